"""
Custom exceptions for the Box Scanner application.

Every failure in the scanning station is a dead-end the operator resolves by
repeating the action, so each exception carries a short title and a
localized message that the UI shows in a blocking dialog. Nothing here is
fatal and nothing is retried automatically.

Exception hierarchy:
    BoxScannerError (base)
    ├── ScanRejectedError (decode event dropped, session unchanged)
    │   ├── InvalidBoxCodeError (box scan without the box prefix)
    │   └── NoActiveBoxError (product scan before any box was started)
    ├── ExportWriteError (spreadsheet could not be written to the cache)
    │   └── ExportFormatError (rows could not be encoded as a workbook)
    └── HandoffUnavailableError (export could not be handed off)
        ├── ShareUnavailableError
        └── MailUnavailableError
"""

from typing import Optional


class BoxScannerError(Exception):
    """
    Base exception for all Box Scanner errors.

    Catch this to handle any application error with a single except clause:
        try:
            logic.share_export()
        except BoxScannerError as e:
            QMessageBox.warning(self, e.title, e.get_display_message())

    Attributes:
        title (str): Caption for the notification dialog.
    """

    title = "Ошибка"

    def get_display_message(self) -> str:
        """Return the text shown to the operator."""
        return str(self)


class ScanRejectedError(BoxScannerError):
    """
    A decode event was rejected and dropped.

    The session is left exactly as it was; the operator has to scan again.

    Attributes:
        code (str): The raw payload that was rejected.
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class InvalidBoxCodeError(ScanRejectedError):
    """Raised when a box scan is attempted with a code lacking the box prefix."""

    def __init__(self, code: str, prefix: str = "WB_"):
        super().__init__("Неверный шк код.", code=code)
        self.prefix = prefix

    def get_display_message(self) -> str:
        return f"Неверный шк код.\n\nШтрих-код коробки должен начинаться с {self.prefix}: {self.code}"


class NoActiveBoxError(ScanRejectedError):
    """Raised when a product is scanned before any box has been started."""

    def __init__(self, code: Optional[str] = None):
        super().__init__("Начните новую коробку перед сканированием продукта.", code=code)


class ExportWriteError(BoxScannerError):
    """
    Raised when the spreadsheet could not be written to the cache location.

    The export chain stops here; share and mail are never reached.

    Attributes:
        path (str | None): Destination that failed.
    """

    title = "Ошибка экспорта"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path

    def get_display_message(self) -> str:
        if not self.path:
            return str(self)
        return f"Не удалось сохранить файл:\n{self.path}\n\n{self}"


class ExportFormatError(ExportWriteError):
    """Raised when the scanned rows cannot be encoded as a spreadsheet."""

    def get_display_message(self) -> str:
        return f"Не удалось сформировать файл.\n\n{self}"


class HandoffUnavailableError(BoxScannerError):
    """Raised when the export cannot be handed to a share or mail target."""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.target = target


class ShareUnavailableError(HandoffUnavailableError):
    """Raised when no application accepts the exported file."""

    title = "Поделиться"


class MailUnavailableError(HandoffUnavailableError):
    """Raised when the mailto: link cannot be opened on this machine."""

    title = "Отправить по Email"
