"""Journal-aware chat assistant backed by the OpenAI chat completions API.

The journal side is synchronous and pure: ``build_journal_context`` turns the
most recent entries into a prompt block. The network call lives in
``JournalAssistant`` and failures come back as ``AssistantError``; nothing in
this module ever modifies journal entries.

Usage:
    assistant = JournalAssistant(SettingsCredentialStore())
    session = ChatSession(assistant)
    session.send("What did I eat in Osaka?", document.entries)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any, Protocol

import openai

from journalmap.constants import (
    ASSISTANT_MAX_TOKENS,
    ASSISTANT_MODEL,
    ASSISTANT_TEMPERATURE,
    CONTEXT_ENTRY_LIMIT,
    EMPTY_JOURNAL_CONTEXT,
    ENTRY_CONTEXT_TEMPLATE,
    SYSTEM_PROMPT_TEMPLATE,
)
from journalmap.models import ChatMessage, JournalEntry

CONTEXT_SEPARATOR = "\n---\n\n"


class CredentialStore(Protocol):
    def get(self) -> str | None: ...

    def set(self, value: str) -> None: ...

    def delete(self) -> None: ...


class AssistantFailure(str, Enum):
    MISSING_API_KEY = "missing_api_key"
    NETWORK = "network"
    INVALID_RESPONSE = "invalid_response"


FAILURE_MESSAGES = {
    AssistantFailure.MISSING_API_KEY: "OpenAI API key is not set. Please configure it in settings.",
    AssistantFailure.NETWORK: "Could not reach the assistant service",
    AssistantFailure.INVALID_RESPONSE: "Invalid response from API",
}


class AssistantError(Exception):
    """
    Raised when the remote assistant cannot produce a reply.

    Attributes:
        failure: which kind of failure occurred
        message: human readable description, safe to show to the user
    """

    def __init__(self, failure: AssistantFailure, detail: str = "") -> None:
        self.failure = failure
        message = FAILURE_MESSAGES[failure]
        if detail:
            message = f"{message}: {detail}"
        self.message = message
        super().__init__(message)


def render_entry_context(entry: JournalEntry) -> str:
    return ENTRY_CONTEXT_TEMPLATE.render(
        title=entry.title,
        categories=entry.categories,
        body=entry.body,
        date=entry.timestamp.isoformat(timespec="seconds"),
    )


def build_journal_context(
    entries: Iterable[JournalEntry], limit: int = CONTEXT_ENTRY_LIMIT
) -> str:
    """Render up to ``limit`` of the newest entries as Title/Categories/Body/Date blocks."""
    recent = sorted(entries, key=lambda entry: entry.timestamp, reverse=True)[:limit]
    if not recent:
        return EMPTY_JOURNAL_CONTEXT
    return CONTEXT_SEPARATOR.join(render_entry_context(entry) for entry in recent)


def build_system_prompt(journal_context: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.render(journal_context=journal_context)


class JournalAssistant:
    """Sends one question plus the journal context to the completion API."""

    def __init__(
        self,
        credentials: CredentialStore,
        model: str = ASSISTANT_MODEL,
        client_factory: Callable[..., Any] = openai.OpenAI,
    ) -> None:
        """
        Args:
            credentials: where the API key is read from on every request
            model: chat completion model name
            client_factory: builds an OpenAI-compatible client from ``api_key``
        """
        self.credentials = credentials
        self.model = model
        self._client_factory = client_factory

    def ask(self, message: str, journal_context: str) -> str:
        """Return the assistant's reply or raise ``AssistantError``."""
        api_key = self.credentials.get()
        if not api_key:
            raise AssistantError(AssistantFailure.MISSING_API_KEY)

        client = self._client_factory(api_key=api_key)
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": build_system_prompt(journal_context)},
                    {"role": "user", "content": message},
                ],
                temperature=ASSISTANT_TEMPERATURE,
                max_tokens=ASSISTANT_MAX_TOKENS,
            )
        except openai.OpenAIError as exc:
            logging.exception("Assistant request failed")
            raise AssistantError(AssistantFailure.NETWORK, str(exc)) from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise AssistantError(AssistantFailure.INVALID_RESPONSE) from exc
        if not isinstance(content, str):
            raise AssistantError(AssistantFailure.INVALID_RESPONSE)
        return content


class ChatSession:
    """Conversation log for the chat tab.

    ``send`` is synchronous; the Qt worker calls ``assistant.ask`` directly
    and reports back through ``add_reply`` / ``fail``.
    """

    def __init__(self, assistant: JournalAssistant) -> None:
        self.assistant = assistant
        self.messages: list[ChatMessage] = []
        self.is_loading = False
        self.error_message: str | None = None

    def begin(self, content: str) -> ChatMessage:
        message = ChatMessage(content=content, is_user=True)
        self.messages.append(message)
        self.is_loading = True
        self.error_message = None
        return message

    def add_reply(self, content: str) -> ChatMessage:
        reply = ChatMessage(content=content, is_user=False)
        self.messages.append(reply)
        self.is_loading = False
        return reply

    def fail(self, message: str) -> None:
        self.is_loading = False
        self.error_message = message

    def send(
        self,
        content: str,
        entries: Iterable[JournalEntry],
        limit: int = CONTEXT_ENTRY_LIMIT,
    ) -> ChatMessage | None:
        """Ask the assistant about ``entries``; returns the reply or None on failure."""
        self.begin(content)
        try:
            reply = self.assistant.ask(content, build_journal_context(entries, limit))
        except AssistantError as exc:
            self.fail(exc.message)
            return None
        return self.add_reply(reply)
