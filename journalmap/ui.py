"""User interface components and event handling."""

from __future__ import annotations

import calendar
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from PySide6.QtCore import (
    QAbstractListModel,
    QModelIndex,
    QPersistentModelIndex,
    QStringListModel,
    Qt,
    QThread,
    Signal,
    Slot,
)
from PySide6.QtGui import (
    QCloseEvent,
    QFont,
    QKeyEvent,
    QPalette,
    QSyntaxHighlighter,
    QTextCharFormat,
    QTextCursor,
    QTextDocument,
)
from PySide6.QtWidgets import (
    QComboBox,
    QCompleter,
    QFileDialog,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QListView,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QSplitter,
    QStackedWidget,
    QTabWidget,
    QTextBrowser,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from journalmap.assistant import ChatSession, JournalAssistant
from journalmap.assistant_worker import AssistantWorker
from journalmap.classifier import COMMA_KEY, ENTER_KEY
from journalmap.constants import DATABASE_PATH, LINE_ROLE_FONTS
from journalmap.credentials import SettingsCredentialStore
from journalmap.document import JournalDocument
from journalmap.models import JournalEntry, LineRole
from journalmap.sections import (
    category_sections,
    entry_titles,
    filter_by_date,
    group_by_month,
    group_by_year,
    search_entries,
)
from journalmap.storage import export_journal_to_csv
from journalmap.utils import (
    format_timestamp_display,
    index_to_qt_position,
    preview_text,
    qt_position_to_index,
    render_chat_message_html,
    render_empty_history_html,
    render_entry_detail_html,
)

FONT_WEIGHTS = {
    "bold": QFont.Weight.Bold,
    "medium": QFont.Weight.Medium,
    "regular": QFont.Weight.Normal,
}


def is_dark_palette(widget: QWidget) -> bool:
    palette = widget.palette()
    base_lightness = palette.color(QPalette.ColorRole.Base).lightnessF()
    window_lightness = palette.color(QPalette.ColorRole.Window).lightnessF()
    return min(base_lightness, window_lightness) < 0.5


class JournalEntryListModel(QAbstractListModel):
    """List model over parsed entries for the list and titles-only views."""

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self._entries: list[JournalEntry] = []
        self._titles_only = False

    def rowCount(
        self, parent: QModelIndex | QPersistentModelIndex = QModelIndex()
    ) -> int:
        """返回模型中的行数。"""
        if parent.isValid():
            return 0
        return len(self._entries)

    def data(
        self,
        index: QModelIndex | QPersistentModelIndex,
        role: int = Qt.ItemDataRole.DisplayRole,
    ) -> Any:
        """返回指定索引和角色的数据。"""
        if not index.isValid() or index.row() >= len(self._entries):
            return None

        entry = self._entries[index.row()]

        if role == Qt.ItemDataRole.DisplayRole:
            title = entry.title or "Untitled"
            if self._titles_only:
                return title

            display_lines = [f"[{format_timestamp_display(entry.timestamp)}] {title}"]
            if entry.categories:
                display_lines.append(
                    "  " + " ".join(f"#{name}" for name in entry.categories)
                )
            preview = preview_text(entry.body)
            if preview:
                display_lines.append(f"  -> {preview}")
            return "\n".join(display_lines)

        elif role == Qt.ItemDataRole.UserRole:
            return entry

        return None

    def get_entry(self, index: QModelIndex) -> JournalEntry | None:
        """获取指定索引的 JournalEntry 对象。"""
        if not index.isValid() or index.row() >= len(self._entries):
            return None
        return self._entries[index.row()]

    def set_entries(self, entries: list[JournalEntry]) -> None:
        """设置新的条目列表并通知视图更新。"""
        self.beginResetModel()
        self._entries = list(entries)
        self.endResetModel()

    def set_titles_only(self, titles_only: bool) -> None:
        self.beginResetModel()
        self._titles_only = titles_only
        self.endResetModel()

    def clear(self) -> None:
        """清空所有条目。"""
        self.beginResetModel()
        self._entries = []
        self.endResetModel()


class LineRoleHighlighter(QSyntaxHighlighter):
    """Applies the title/category/body fonts computed by the classifier."""

    def __init__(self, document: QTextDocument) -> None:
        super().__init__(document)
        self._roles: list[LineRole] = []
        self._formats: dict[LineRole, QTextCharFormat] = {}
        for role in LineRole:
            size, weight = LINE_ROLE_FONTS[role.value]
            fmt = QTextCharFormat()
            fmt.setFontPointSize(size)
            fmt.setFontWeight(FONT_WEIGHTS[weight])
            self._formats[role] = fmt

    def set_roles(self, roles: list[LineRole]) -> None:
        self._roles = roles
        self.rehighlight()

    def highlightBlock(self, text: str) -> None:  # type: ignore[override]
        number = self.currentBlock().blockNumber()
        role = self._roles[number] if number < len(self._roles) else LineRole.BLANK
        self.setFormat(0, len(text), self._formats[role])


class ContinuousTextEditor(QPlainTextEdit):
    """Single text buffer editor wired to the journal state machine."""

    content_changed = Signal()

    def __init__(self, journal: JournalDocument, parent=None) -> None:
        super().__init__(parent)
        self._journal = journal
        self._syncing = False
        self.setObjectName("ContinuousTextEditor")
        self.setPlaceholderText("Press + to start your first entry")
        self._highlighter = LineRoleHighlighter(self.document())

        self._suggestion_model = QStringListModel(self)
        self._completer = QCompleter(self._suggestion_model, self)
        self._completer.setWidget(self)
        self._completer.setCompletionMode(
            QCompleter.CompletionMode.UnfilteredPopupCompletion
        )
        self._completer.activated[str].connect(self._insert_suggestion)

        self.textChanged.connect(self._on_text_changed)
        self.cursorPositionChanged.connect(self.refresh_roles)
        self.sync_from_journal()

    def sync_from_journal(self, index: int | None = None) -> None:
        """Replace the widget text with the journal buffer without feeding it back.

        ``index`` is a journal text index; the cursor goes to the end when omitted.
        """
        self._syncing = True
        try:
            self.setPlainText(self._journal.raw_text)
        finally:
            self._syncing = False
        if index is None:
            cursor = self.textCursor()
            cursor.movePosition(QTextCursor.MoveOperation.End)
            self.setTextCursor(cursor)
        else:
            self.set_cursor_index(index)
        self.refresh_roles()

    def cursor_index(self) -> int:
        """Cursor as an index into the journal text rather than a Qt position."""
        return qt_position_to_index(self.toPlainText(), self.textCursor().position())

    def set_cursor_index(self, index: int) -> None:
        cursor = self.textCursor()
        cursor.setPosition(index_to_qt_position(self.toPlainText(), index))
        self.setTextCursor(cursor)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if self._completer.popup().isVisible() and event.key() in (
            Qt.Key.Key_Return,
            Qt.Key.Key_Enter,
            Qt.Key.Key_Escape,
            Qt.Key.Key_Tab,
        ):
            # the popup consumes these
            event.ignore()
            return

        key = None
        if event.key() in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            key = ENTER_KEY
        elif event.text() == COMMA_KEY:
            key = COMMA_KEY

        if key is not None:
            cursor = self.textCursor()
            outcome = self._journal.handle_key(key, self.cursor_index(), apply=False)
            if outcome.handled:
                cursor.insertText(outcome.inserted)
                self.setTextCursor(cursor)
                return

        super().keyPressEvent(event)

    def refresh_roles(self) -> None:
        self._highlighter.set_roles(
            self._journal.line_roles(self.cursor_index())
        )

    def _on_text_changed(self) -> None:
        if self._syncing:
            return
        self._journal.set_raw_text(self.toPlainText())
        self.refresh_roles()
        self._update_suggestions()
        self.content_changed.emit()

    def _update_suggestions(self) -> None:
        suggestions = self._journal.suggestions_at(self.cursor_index())
        if not suggestions:
            self._completer.popup().hide()
            return
        self._suggestion_model.setStringList(suggestions)
        rect = self.cursorRect()
        rect.setWidth(220)
        self._completer.complete(rect)

    @Slot(str)
    def _insert_suggestion(self, name: str) -> None:
        position = self._journal.accept_suggestion(self.cursor_index(), name)
        self.sync_from_journal(position)
        self.content_changed.emit()


class JournalPage(QWidget):
    """Continuous editor plus an entry list with detail pane."""

    entries_changed = Signal()

    def __init__(self, journal: JournalDocument, parent=None) -> None:
        super().__init__(parent)
        self._journal = journal

        layout = QVBoxLayout()
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(12)

        toolbar = QHBoxLayout()
        self.new_entry_button = QPushButton("+ New Entry")
        self.new_entry_button.clicked.connect(self.start_new_entry)
        toolbar.addWidget(self.new_entry_button)

        self.titles_toggle = QPushButton("Titles Only")
        self.titles_toggle.setCheckable(True)
        self.titles_toggle.toggled.connect(self.set_titles_only)
        toolbar.addWidget(self.titles_toggle)

        self.delete_button = QPushButton("Delete Entry")
        self.delete_button.clicked.connect(self.delete_selected_entry)
        self.delete_button.setEnabled(False)
        toolbar.addWidget(self.delete_button)

        toolbar.addStretch()
        self.export_button = QPushButton("Export to CSV")
        self.export_button.clicked.connect(self.export_journal)
        toolbar.addWidget(self.export_button)
        layout.addLayout(toolbar)

        self.stack = QStackedWidget()
        self.editor = ContinuousTextEditor(journal)
        self.editor.content_changed.connect(self._on_editor_changed)
        self.stack.addWidget(self.editor)

        self.list_model = JournalEntryListModel(self)
        self.list_model.set_titles_only(True)
        self.entry_list = QListView()
        self.entry_list.setModel(self.list_model)
        self.entry_list.setSelectionMode(QListView.SelectionMode.SingleSelection)
        self.entry_list.selectionModel().currentChanged.connect(
            self.on_selection_changed
        )
        self.entry_detail = QTextBrowser()
        self.entry_detail.setOpenExternalLinks(False)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        splitter.addWidget(self.entry_list)
        splitter.addWidget(self.entry_detail)
        splitter.setStretchFactor(0, 1)
        splitter.setStretchFactor(1, 2)
        self.stack.addWidget(splitter)
        layout.addWidget(self.stack)

        self.status_label = QLabel("")
        layout.addWidget(self.status_label)
        self.setLayout(layout)

        self.refresh_entries()

    def start_new_entry(self) -> None:
        if self.titles_toggle.isChecked():
            self.titles_toggle.setChecked(False)
        position = self._journal.start_new_entry()
        self.editor.sync_from_journal(position)
        self.editor.setFocus()
        self._on_editor_changed()

    @Slot(bool)
    def set_titles_only(self, titles_only: bool) -> None:
        self.stack.setCurrentIndex(1 if titles_only else 0)
        self.delete_button.setEnabled(False)
        if titles_only:
            self.refresh_entries()
        else:
            self.editor.sync_from_journal()

    def refresh_entries(self) -> None:
        self.list_model.set_entries(self._journal.entries)
        if self.list_model.rowCount() == 0:
            self.entry_detail.setHtml(render_empty_history_html(is_dark_palette(self)))
        self._show_save_state()

    def _on_editor_changed(self) -> None:
        self._show_save_state()
        self.entries_changed.emit()

    def _show_save_state(self) -> None:
        if self._journal.last_error is not None:
            self.status_label.setText(f"Not saved: {self._journal.last_error}")
        else:
            self.status_label.setText(f"{len(self._journal.entries)} entries")

    def on_selection_changed(self, current: QModelIndex, previous: QModelIndex) -> None:
        entry = self.list_model.get_entry(current)
        self.delete_button.setEnabled(entry is not None)
        if entry is None:
            self.entry_detail.setHtml(render_empty_history_html(is_dark_palette(self)))
            return
        self.entry_detail.setHtml(render_entry_detail_html(entry, is_dark_palette(self)))

    def delete_selected_entry(self) -> None:
        index = self.entry_list.currentIndex()
        entry = self.list_model.get_entry(index)
        if entry is None:
            return
        answer = QMessageBox.question(
            self, "Delete Entry", f"Delete “{entry.title}” from the journal?"
        )
        if answer != QMessageBox.StandardButton.Yes:
            return
        self._journal.delete_entry(index.row())
        self.editor.sync_from_journal()
        self.refresh_entries()
        self.entries_changed.emit()

    def export_journal(self) -> None:
        """Export saved entries to a CSV file."""
        suggested_name = (
            f"journal-export-{datetime.now().strftime('%Y%m%d-%H%M%S')}.csv"
        )
        target_path_str, _ = QFileDialog.getSaveFileName(
            self,
            "Export Journal to CSV",
            str(Path.home() / suggested_name),
            "CSV Files (*.csv);;All Files (*)",
        )
        if not target_path_str:
            return

        target_path = Path(target_path_str)
        try:
            exported_rows = export_journal_to_csv(self._journal.db_path, target_path)
        except Exception as exc:  # surfacing rare export failures
            logging.exception("Journal export failed")
            QMessageBox.critical(self, "Export Failed", f"Could not export journal: {exc}")
            return

        QMessageBox.information(
            self,
            "Export Complete",
            f"Exported {exported_rows} entries to {target_path.resolve()}",
        )


class CollectionsPage(QWidget):
    """Entries grouped by category and by year and month.

    A search box and a year filter narrow the entries before grouping.
    """

    def __init__(self, journal: JournalDocument, parent=None) -> None:
        super().__init__(parent)
        self._journal = journal

        layout = QVBoxLayout()
        layout.setContentsMargins(16, 16, 16, 16)
        filters = QHBoxLayout()
        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search entries")
        self.search_input.textChanged.connect(self.refresh)
        filters.addWidget(self.search_input)
        self.year_filter = QComboBox()
        self.year_filter.currentIndexChanged.connect(self.refresh)
        filters.addWidget(self.year_filter)
        layout.addLayout(filters)

        self.tree = QTreeWidget()
        self.tree.setHeaderHidden(True)
        layout.addWidget(self.tree)
        self.setLayout(layout)
        self.refresh()

    def selected_year(self) -> int | None:
        return self.year_filter.currentData()

    def _update_year_filter(self) -> None:
        selected = self.selected_year()
        years = [section.year for section in group_by_year(self._journal.entries)]
        self.year_filter.blockSignals(True)
        try:
            self.year_filter.clear()
            self.year_filter.addItem("All years", None)
            for year in years:
                self.year_filter.addItem(str(year), year)
            if selected in years:
                self.year_filter.setCurrentIndex(years.index(selected) + 1)
        finally:
            self.year_filter.blockSignals(False)

    def refresh(self) -> None:
        self._update_year_filter()
        entries = search_entries(self._journal.entries, self.search_input.text())
        year = self.selected_year()
        if year is not None:
            entries = filter_by_date(entries, year)
        self.tree.clear()

        categories_root = QTreeWidgetItem(self.tree, ["Categories"])
        for section in category_sections(self._journal.categories.records(), entries):
            if not section.entry_count:
                continue
            node = QTreeWidgetItem(
                categories_root, [f"#{section.name} ({section.entry_count})"]
            )
            for title in entry_titles(section.entries):
                QTreeWidgetItem(node, [title])

        dates_root = QTreeWidgetItem(self.tree, ["Dates"])
        for section in group_by_year(entries):
            year_node = QTreeWidgetItem(
                dates_root, [f"{section.year} ({len(section.entries)})"]
            )
            for month in group_by_month(section.entries, section.year):
                month_node = QTreeWidgetItem(
                    year_node,
                    [f"{calendar.month_name[month.month or 1]} ({len(month.entries)})"],
                )
                for entry in month.entries:
                    QTreeWidgetItem(
                        month_node,
                        [f"{format_timestamp_display(entry.timestamp)}  {entry.title}"],
                    )

        categories_root.setExpanded(True)
        dates_root.setExpanded(True)


class ChatPage(QWidget):
    """Conversation with the assistant about the journal."""

    ask_request = Signal(object)  # payload dict

    def __init__(
        self, journal: JournalDocument, assistant: JournalAssistant, parent=None
    ) -> None:
        super().__init__(parent)
        self._journal = journal
        self._assistant = assistant
        self.session = ChatSession(assistant)

        layout = QVBoxLayout()
        layout.setContentsMargins(16, 16, 16, 16)

        self.log_view = QTextBrowser()
        layout.addWidget(self.log_view)

        self.error_label = QLabel("")
        self.error_label.setWordWrap(True)
        layout.addWidget(self.error_label)

        row = QHBoxLayout()
        self.message_input = QLineEdit()
        self.message_input.setPlaceholderText("Ask about your journal")
        self.message_input.returnPressed.connect(self.send_message)
        row.addWidget(self.message_input)
        self.send_button = QPushButton("Send")
        self.send_button.clicked.connect(self.send_message)
        row.addWidget(self.send_button)
        self.key_button = QPushButton("API Key…")
        self.key_button.clicked.connect(self.configure_api_key)
        row.addWidget(self.key_button)
        layout.addLayout(row)
        self.setLayout(layout)

        self._thread = QThread(self)
        self._worker = AssistantWorker(assistant)
        self._worker.moveToThread(self._thread)
        self.ask_request.connect(self._worker.ask)
        self._worker.reply_ready.connect(self._on_reply_ready)
        self._worker.request_failed.connect(self._on_request_failed)
        self._thread.start()

    def send_message(self) -> None:
        content = self.message_input.text().strip()
        if not content or self.session.is_loading:
            return
        self.session.begin(content)
        self.message_input.clear()
        self.send_button.setEnabled(False)
        self.error_label.setText("")
        self._render_log()
        self.ask_request.emit(
            {"message": content, "context": self._journal.assistant_context()}
        )

    @Slot(str)
    def _on_reply_ready(self, reply: str) -> None:
        self.session.add_reply(reply)
        self.send_button.setEnabled(True)
        self._render_log()

    @Slot(str)
    def _on_request_failed(self, message: str) -> None:
        self.session.fail(message)
        self.send_button.setEnabled(True)
        self.error_label.setText(message)

    def _render_log(self) -> None:
        dark = is_dark_palette(self)
        self.log_view.setHtml(
            "".join(render_chat_message_html(msg, dark) for msg in self.session.messages)
        )
        self.log_view.moveCursor(QTextCursor.MoveOperation.End)

    def configure_api_key(self) -> None:
        value, accepted = QInputDialog.getText(
            self,
            "OpenAI API Key",
            "API key (leave empty to remove):",
            QLineEdit.EchoMode.Password,
        )
        if not accepted:
            return
        if value.strip():
            self._assistant.credentials.set(value)
        else:
            self._assistant.credentials.delete()

    def shutdown(self) -> None:
        try:
            if self._thread.isRunning():
                self._thread.quit()
                self._thread.wait(2000)
        except Exception:
            logging.exception("Failed to stop assistant worker thread cleanly")


class JournalWindow(QWidget):
    """Main application window: journal, collections and chat tabs."""

    def __init__(self, db_path: Path = DATABASE_PATH) -> None:
        super().__init__()
        self.setWindowTitle("JournalMap")

        self.journal = JournalDocument(db_path)
        self.journal.load()
        assistant = JournalAssistant(SettingsCredentialStore())

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        self.tabs = QTabWidget()
        self.journal_page = JournalPage(self.journal)
        self.collections_page = CollectionsPage(self.journal)
        self.chat_page = ChatPage(self.journal, assistant)
        self.tabs.addTab(self.journal_page, "Journal")
        self.tabs.addTab(self.collections_page, "Collections")
        self.tabs.addTab(self.chat_page, "Chat")
        self.tabs.currentChanged.connect(self._on_tab_changed)
        self.journal_page.entries_changed.connect(self._on_entries_changed)
        layout.addWidget(self.tabs)
        self.setLayout(layout)

    def _on_tab_changed(self, index: int) -> None:
        if self.tabs.widget(index) is self.collections_page:
            self.collections_page.refresh()

    def _on_entries_changed(self) -> None:
        # the collections tree is rebuilt lazily when its tab is shown
        if self.tabs.currentWidget() is self.collections_page:
            self.collections_page.refresh()

    def closeEvent(self, event: QCloseEvent) -> None:
        if self.journal.last_error is not None and not self.journal.save():
            logging.error("Closing with unsaved journal changes in %s", self.journal.db_path)
        self.chat_page.shutdown()
        super().closeEvent(event)
