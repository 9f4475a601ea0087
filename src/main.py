import sys
from PySide6.QtWidgets import QApplication, QMainWindow, QMessageBox

from app_config import load_config, AppConfig
from box_scan_logic import BoxScanLogic
from exceptions import BoxScannerError, ExportWriteError
from logger import clear_logging_context, get_logger
from scanner_widget import ScannerWidget

logger = get_logger(__name__)


class MainWindow(QMainWindow):
    """
    The main application window.

    Connects the scanning screen to BoxScanLogic and turns every outcome the
    operator must see (box started, product counted, rejected scan, failed
    export) into a blocking message box.

    Attributes:
        logic (BoxScanLogic): Session owner and export chain.
        scanner_widget (ScannerWidget): The scanning screen.
    """
    def __init__(self, config: AppConfig = None, logic: BoxScanLogic = None):
        super().__init__()
        self.setWindowTitle("Box Scanner")
        self.resize(640, 720)

        logger.info("Initializing MainWindow")

        self.logic = logic or BoxScanLogic(config or load_config())

        self.scanner_widget = ScannerWidget()
        self.setCentralWidget(self.scanner_widget)

        self.scanner_widget.barcode_scanned.connect(self.on_scanner_input)
        self.scanner_widget.new_box_requested.connect(self.logic.request_new_box)
        self.scanner_widget.product_scan_requested.connect(self.logic.request_product_scan)
        self.scanner_widget.share_requested.connect(self.share_excel)
        self.scanner_widget.email_requested.connect(self.email_excel)

        self.logic.mode_changed.connect(self.scanner_widget.set_mode)
        self.logic.box_started.connect(self._on_box_started)
        self.logic.product_counted.connect(self._on_product_counted)
        self.logic.scan_rejected.connect(self._on_scan_rejected)

        self.scanner_widget.set_focus_to_scanner()
        logger.info("MainWindow initialized successfully")

    def notify(self, title: str, text: str, error: bool = False):
        """Show a blocking notification."""
        if error:
            QMessageBox.warning(self, title, text)
        else:
            QMessageBox.information(self, title, text)
        self.scanner_widget.set_focus_to_scanner()

    def on_scanner_input(self, text: str):
        """Central callback for every decode event from the scanner."""
        self.logic.on_decode(text)

    def _refresh_view(self):
        self.scanner_widget.display_tally(self.logic.current_tally())
        summary = self.logic.summary()
        self.scanner_widget.update_summary(summary['boxes'], summary['items'])

    def _on_box_started(self, box_id: str):
        self.scanner_widget.set_current_box(box_id)
        self._refresh_view()
        self.notify("Начата новая коробка", f"Штрих-код коробки: {box_id}\n\nШК коробки отсканирован.")

    def _on_product_counted(self, box_id: str, barcode: str, quantity: int):
        self._refresh_view()
        self.scanner_widget.highlight_barcode(barcode)
        self.notify("Успех", "ШК продукта отсканирован.")

    def _on_scan_rejected(self, title: str, message: str):
        self.notify(title, message, error=True)

    def share_excel(self):
        try:
            location = self.logic.share_export()
            logger.info(f"Packing list shared: {location}")
        except ExportWriteError as e:
            logger.error(f"Export failed: {e}")
            self.notify(e.title, e.get_display_message(), error=True)
        except BoxScannerError as e:
            logger.warning(f"Share failed: {e}")
            self.notify(e.title, e.get_display_message(), error=True)

    def email_excel(self):
        try:
            url = self.logic.email_export()
            logger.info(f"Packing list mailed via {url}")
        except ExportWriteError as e:
            logger.error(f"Export failed: {e}")
            self.notify(e.title, e.get_display_message(), error=True)
        except BoxScannerError as e:
            logger.warning(f"Email failed: {e}")
            self.notify(e.title, e.get_display_message(), error=True)

    def closeEvent(self, event):
        """The scan session ends with the window; drop its log context."""
        summary = self.logic.summary()
        logger.info(f"Session {self.logic.session_id} closed", extra={'extra_data': summary})
        clear_logging_context()
        super().closeEvent(event)


def main() -> int:
    app = QApplication(sys.argv)
    window = MainWindow()
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
