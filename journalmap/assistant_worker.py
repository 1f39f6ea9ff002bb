"""Background assistant worker running in its own QThread.

This module exposes AssistantWorker, a QObject that performs the remote
assistant request off the UI thread and emits signals with the result. The
worker never touches the chat session or the journal; the UI thread owns
both and updates them from the signals.
"""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, Signal, Slot

from journalmap.assistant import AssistantError, JournalAssistant


class AssistantWorker(QObject):
    """Worker running in a dedicated QThread to talk to the assistant.

    Signals:
        reply_ready: emitted with the assistant's reply text
        request_failed: emitted with a human readable failure message
    """

    reply_ready = Signal(str)
    request_failed = Signal(str)

    def __init__(self, assistant: JournalAssistant) -> None:
        super().__init__()
        self._assistant = assistant

    @Slot(object)
    def ask(self, payload) -> None:
        """Send a question to the assistant using a payload dict.

        The payload carries ``message`` and the pre-rendered journal
        ``context`` so the worker never reads journal state itself.
        """
        message = payload.get("message", "")
        context = payload.get("context", "")
        try:
            reply = self._assistant.ask(message, context)
        except AssistantError as exc:
            logging.warning("Assistant request failed: %s", exc.message)
            self.request_failed.emit(exc.message)
            return

        self.reply_ready.emit(reply)
