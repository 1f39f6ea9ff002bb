"""Main entry point for the JournalMap application."""

from __future__ import annotations

import sys

from PySide6.QtWidgets import QApplication

from journalmap.constants import DATABASE_PATH
from journalmap.storage import initialize_storage
from journalmap.ui import JournalWindow


def main() -> int:
    """Initialize the database and launch the application."""
    initialize_storage(DATABASE_PATH)
    app = QApplication(sys.argv)
    window = JournalWindow(DATABASE_PATH)
    window.resize(720, 760)
    window.show()
    return int(app.exec())


if __name__ == "__main__":
    sys.exit(main())
