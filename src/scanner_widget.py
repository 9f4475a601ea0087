from PySide6.QtWidgets import (
    QWidget, QHBoxLayout, QVBoxLayout, QTableWidget, QTableWidgetItem,
    QLabel, QLineEdit, QHeaderView, QPushButton, QAbstractItemView
)
from PySide6.QtGui import QFont, QColor
from PySide6.QtCore import Qt, Signal
from typing import Dict

from export_formatter import MARKING_NO, MARKING_YES
from scan_session import ProductRecord, ScanMode

MODE_PROMPTS = {
    ScanMode.IDLE.value: "Нажмите «Сканировать товар»",
    ScanMode.AWAITING_NEW_BOX_SCAN.value: "Отсканируйте ШК коробки",
    ScanMode.AWAITING_PRODUCT_SCAN.value: "Отсканируйте ШК товара",
}


class ScannerWidget(QWidget):
    """
    The scanning screen.

    Shows the tally of the open box and captures input from a USB barcode
    scanner, which types the decoded code into a hidden line edit and presses
    Enter. The four buttons of the station only emit signals; the window
    decides what they do.

    Attributes:
        barcode_scanned (Signal): Emitted with the decoded text on Enter.
        new_box_requested (Signal): "Новая коробка" clicked.
        product_scan_requested (Signal): "Сканировать товар" clicked.
        share_requested (Signal): "Поделиться" clicked.
        email_requested (Signal): "Отправить по Email" clicked.
        table (QTableWidget): Products of the current box.
        box_label (QLabel): Current box barcode.
        status_label (QLabel): What the station expects next.
        summary_label (QLabel): Boxes and items counted so far.
        raw_scan_label (QLabel): Text of the last scan.
        scanner_input (QLineEdit): Hidden input receiving scanner keystrokes.
    """
    barcode_scanned = Signal(str)
    new_box_requested = Signal()
    product_scan_requested = Signal()
    share_requested = Signal()
    email_requested = Signal()

    def __init__(self, parent: QWidget = None):
        super().__init__(parent)

        main_layout = QVBoxLayout(self)

        self.box_label = QLabel("Коробка: —")
        font = QFont()
        font.setPointSize(18)
        font.setBold(True)
        self.box_label.setFont(font)
        self.box_label.setAlignment(Qt.AlignCenter)

        self.status_label = QLabel(MODE_PROMPTS[ScanMode.IDLE.value])
        status_font = QFont()
        status_font.setPointSize(14)
        self.status_label.setFont(status_font)
        self.status_label.setAlignment(Qt.AlignCenter)
        self.status_label.setWordWrap(True)

        self.table = QTableWidget()
        self.table.setColumnCount(3)
        self.table.setHorizontalHeaderLabels(["Barcode", "Quantity", "Has KIZ"])
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeToContents)
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.setSelectionMode(QAbstractItemView.NoSelection)
        self.table.setFocusPolicy(Qt.NoFocus)

        self.raw_scan_label = QLabel("-")
        self.raw_scan_label.setAlignment(Qt.AlignCenter)
        self.raw_scan_label.setObjectName("RawScanLabel")

        self.summary_label = QLabel("")
        self.summary_label.setAlignment(Qt.AlignCenter)

        self.scanner_input = QLineEdit()
        self.scanner_input.setFixedSize(1, 1)
        self.scanner_input.returnPressed.connect(self._on_scan)

        button_row = QHBoxLayout()

        left_group = QVBoxLayout()
        self.share_button = QPushButton("Поделиться")
        self.share_button.clicked.connect(self.share_requested.emit)
        self.email_button = QPushButton("Отправить по Email")
        self.email_button.clicked.connect(self.email_requested.emit)
        left_group.addWidget(self.share_button)
        left_group.addWidget(self.email_button)

        right_group = QVBoxLayout()
        self.new_box_button = QPushButton("Новая коробка")
        self.new_box_button.clicked.connect(self._on_new_box_clicked)
        self.scan_item_button = QPushButton("Сканировать товар")
        self.scan_item_button.clicked.connect(self._on_scan_item_clicked)
        right_group.addWidget(self.new_box_button)
        right_group.addWidget(self.scan_item_button)

        button_row.addLayout(left_group)
        button_row.addStretch()
        button_row.addLayout(right_group)

        main_layout.addWidget(self.box_label)
        main_layout.addWidget(self.status_label)
        main_layout.addWidget(self.table, stretch=1)
        main_layout.addWidget(QLabel("Последний скан:"))
        main_layout.addWidget(self.raw_scan_label)
        main_layout.addWidget(self.summary_label)
        main_layout.addWidget(self.scanner_input)
        main_layout.addLayout(button_row)

        self.update_summary(0, 0)

    def _on_scan(self):
        text = self.scanner_input.text()
        self.scanner_input.clear()
        self.raw_scan_label.setText(text)
        self.barcode_scanned.emit(text)

    def _on_new_box_clicked(self):
        self.new_box_requested.emit()
        self.set_focus_to_scanner()

    def _on_scan_item_clicked(self):
        self.product_scan_requested.emit()
        self.set_focus_to_scanner()

    def set_mode(self, mode_value: str):
        """Show the prompt for a ScanMode value."""
        self.status_label.setText(MODE_PROMPTS.get(mode_value, ""))

    def set_current_box(self, box_id: str):
        self.box_label.setText(f"Коробка: {box_id}")

    def display_tally(self, tally: Dict[str, ProductRecord]):
        """
        Fill the table with the products of the current box.

        Args:
            tally: Product records keyed by barcode.
        """
        self.table.clearContents()
        self.table.setRowCount(len(tally))

        for row, barcode in enumerate(sorted(tally)):
            record = tally[barcode]
            self.table.setItem(row, 0, QTableWidgetItem(record.barcode))
            self.table.setItem(row, 1, QTableWidgetItem(str(record.quantity)))
            kiz_item = QTableWidgetItem(MARKING_YES if record.has_marking else MARKING_NO)
            if record.has_marking:
                kiz_item.setBackground(QColor("yellow"))
            self.table.setItem(row, 2, kiz_item)

    def highlight_barcode(self, barcode: str):
        """Mark the row of the product that was just counted."""
        for row in range(self.table.rowCount()):
            item = self.table.item(row, 0)
            if item is not None and item.text() == barcode:
                item.setBackground(QColor("lightgreen"))
                self.table.scrollToItem(item)
                break

    def update_summary(self, boxes: int, items: int):
        self.summary_label.setText(f"Коробок: {boxes}   Товаров: {items}")

    def set_focus_to_scanner(self):
        """Keep keyboard focus on the hidden input so scanner keystrokes land there."""
        self.scanner_input.setFocus()
