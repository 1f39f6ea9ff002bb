"""Configuration constants and templates for the application."""

from __future__ import annotations

import logging
from pathlib import Path
from textwrap import dedent

from jinja2 import DictLoader, Environment, select_autoescape

# Database and file paths
DATABASE_PATH = Path("journal.sqlite3")

# Autocomplete
SUGGESTION_LIMIT = 5

# Remote assistant
CONTEXT_ENTRY_LIMIT = 50
ASSISTANT_MODEL = "gpt-4"
ASSISTANT_TEMPERATURE = 0.7
ASSISTANT_MAX_TOKENS = 500
EMPTY_JOURNAL_CONTEXT = "No journal entries available."

# Credential storage
SETTINGS_ORGANIZATION = "JournalMap"
SETTINGS_APPLICATION = "JournalMap"
API_KEY_SETTING = "openai_api_key"
OPENAI_API_KEY_ENV = "OPENAI_API_KEY"

# Editor font per line role: (point size, weight)
LINE_ROLE_FONTS = {
    "title": (24, "bold"),
    "category": (16, "medium"),
    "body": (16, "regular"),
    "blank": (16, "regular"),
}

# Basic logging setup
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

# Jinja2 template environment for HTML and prompt rendering
TEMPLATE_ENV = Environment(
    loader=DictLoader(
        {
            "entry_detail.html": dedent(
                """\
                <div style='font-family:"Segoe UI",sans-serif; line-height:1.6; color:{{ colors.text }};'>
                    <div style='margin-bottom:12px;'>
                        <div style='font-size:20px; font-weight:bold;'>{{ title }}</div>
                        <div style='color:{{ colors.secondary }};'>{{ timestamp_display }}</div>
                    </div>
                    {% if categories %}
                    <div style='margin:8px 0; color:{{ colors.accent }};'>
                        {% for name in categories %}<span style='margin-right:10px;'>#{{ name }}</span>{% endfor %}
                    </div>
                    {% endif %}
                    <hr style='border:0; height:1px; background:{{ colors.divider }}; margin:12px 0;'>
                    <p style='white-space:pre-wrap; margin:0;'>
                        {% if has_body %}{{ body_text | e | replace('\n', '<br>') | safe }}{% else %}<em>{{ empty_body_notice }}</em>{% endif %}
                    </p>
                </div>
                """
            ),
            "empty_history.html": dedent(
                """\
                <div style='font-family:"Segoe UI",sans-serif; color:{{ colors.secondary }};'>
                    No entries yet. Press + to start one.
                </div>
                """
            ),
            "chat_message.html": dedent(
                """\
                <p style='margin:6px 0;'><b style='color:{{ colors.accent if is_user else colors.secondary }};'>{{ 'You' if is_user else 'Assistant' }}</b>
                <span style='color:{{ colors.secondary }}; font-size:11px;'>{{ timestamp_display }}</span><br>
                {{ content | e | replace('\n', '<br>') | safe }}</p>
                """
            ),
            "journal_entry_context.txt": dedent(
                """\
                Title: {{ title }}
                {% if categories %}
                Categories: {{ categories | join(', ') }}
                {% endif %}
                {% if body %}
                Body: {{ body }}
                {% endif %}
                Date: {{ date }}
                """
            ),
            "assistant_system_prompt.txt": dedent(
                """\
                You are a helpful assistant that can answer questions about the user's journal entries.
                Here are the user's journal entries for context:

                {{ journal_context }}

                Answer questions based on this journal content. Be helpful, concise, and respectful of the user's privacy."""
            ),
        }
    ),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)

ENTRY_DETAIL_TEMPLATE = TEMPLATE_ENV.get_template("entry_detail.html")
EMPTY_HISTORY_TEMPLATE = TEMPLATE_ENV.get_template("empty_history.html")
CHAT_MESSAGE_TEMPLATE = TEMPLATE_ENV.get_template("chat_message.html")
ENTRY_CONTEXT_TEMPLATE = TEMPLATE_ENV.get_template("journal_entry_context.txt")
SYSTEM_PROMPT_TEMPLATE = TEMPLATE_ENV.get_template("assistant_system_prompt.txt")
