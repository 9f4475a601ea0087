# Standard library imports
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple

# Qt framework for signals/slots pattern
from PySide6.QtCore import QObject, Signal

# Local imports
from app_config import AppConfig
from exceptions import InvalidBoxCodeError, ScanRejectedError
from export_formatter import build_rows, persist, serialize
from handoff import MailService, ShareService
from logger import get_logger, set_box_context, set_session_context
from scan_session import (
    STATUS_BOX_CODE_IGNORED,
    STATUS_BOX_STARTED,
    STATUS_PRODUCT_COUNTED,
    MarkingPredicate,
    ProductRecord,
    ProductTally,
    ScanSession,
)

logger = get_logger(__name__)

# Rejections reported by on_decode()
STATUS_INVALID_BOX_CODE = "INVALID_BOX_CODE"
STATUS_NO_ACTIVE_BOX = "NO_ACTIVE_BOX"


class BoxScanLogic(QObject):
    """
    Core logic of the box scanning station.

    Owns the single ScanSession of the process and is its only writer. Decode
    events from the scanner and the operator's button presses come in here,
    the outcome goes out through Qt signals so the UI never touches the
    session directly. Exports read a snapshot taken under the same lock that
    guards every mutation.

    Attributes:
        box_started (Signal): Box id that became the current box.
        product_counted (Signal): box_id, barcode, new quantity.
        scan_rejected (Signal): title, message for a blocking notification.
        mode_changed (Signal): Value of the new ScanMode.
        config (AppConfig): Station settings.
        session (ScanSession): The scanning session.
        session_id (str): Timestamp id used in log context.
    """
    box_started = Signal(str)
    product_counted = Signal(str, str, int)
    scan_rejected = Signal(str, str)
    mode_changed = Signal(str)

    def __init__(self, config: Optional[AppConfig] = None,
                 marking_predicate: Optional[MarkingPredicate] = None,
                 share_service: Optional[ShareService] = None,
                 mail_service: Optional[MailService] = None):
        super().__init__()

        self.config = config or AppConfig()
        self.session = ScanSession(box_prefix=self.config.box_prefix, marking_predicate=marking_predicate)
        self.share_service = share_service or ShareService()
        self.mail_service = mail_service or MailService(
            recipient=self.config.mail_recipient, subject=self.config.mail_subject
        )
        self._lock = threading.Lock()

        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        set_session_context(self.session_id)
        set_box_context(None)

        logger.info(f"BoxScanLogic initialized, session {self.session_id}")
        logger.debug(f"Box prefix: {self.session.box_prefix}, export dir: {self.config.cache_dir}")

    @property
    def current_box_id(self) -> Optional[str]:
        return self.session.current_box_id

    def request_new_box(self):
        """'Новая коробка' pressed: the next scan is a box barcode."""
        with self._lock:
            self.session.request_new_box()
            mode = self.session.mode
        logger.info("Waiting for a box barcode")
        self.mode_changed.emit(mode.value)

    def request_product_scan(self):
        """'Сканировать товар' pressed: accept one product scan."""
        with self._lock:
            self.session.request_product_scan()
            mode = self.session.mode
        logger.debug("Armed for the next product scan")
        self.mode_changed.emit(mode.value)

    def on_decode(self, raw_code: str) -> Tuple[Optional[ProductRecord], str]:
        """
        Process one decode event from the scanner.

        Args:
            raw_code: The decoded payload.

        Returns:
            Tuple of (record, status). Status is one of the ScanSession
            statuses, or "INVALID_BOX_CODE" / "NO_ACTIVE_BOX" when the scan
            was rejected (scan_rejected is emitted in that case).
        """
        try:
            with self._lock:
                mode_before = self.session.mode
                record, status = self.session.on_decode(raw_code)
                box_id = self.session.current_box_id
                mode_after = self.session.mode
        except ScanRejectedError as e:
            status = STATUS_INVALID_BOX_CODE if isinstance(e, InvalidBoxCodeError) else STATUS_NO_ACTIVE_BOX
            logger.warning(f"Scan rejected ({status}): {e.code!r}")
            self.scan_rejected.emit(e.title, e.get_display_message())
            return None, status

        if status == STATUS_BOX_STARTED:
            set_box_context(box_id)
            logger.info(f"New box started: {box_id}")
            self.box_started.emit(box_id)
        elif status == STATUS_PRODUCT_COUNTED:
            logger.info(f"Product counted: {record.barcode} ({record.quantity}) in box {box_id}")
            self.product_counted.emit(box_id, record.barcode, record.quantity)
        elif status == STATUS_BOX_CODE_IGNORED:
            logger.debug(f"Box code {raw_code!r} ignored while scanning products")
        else:
            logger.debug(f"Decode ignored ({status}): {raw_code!r}")

        if mode_after != mode_before:
            self.mode_changed.emit(mode_after.value)

        return record, status

    def current_tally(self) -> ProductTally:
        with self._lock:
            return dict(self.session.current_tally())

    def snapshot(self) -> Dict[str, ProductTally]:
        with self._lock:
            return self.session.snapshot()

    def summary(self) -> Dict[str, int]:
        """Counters for the status panel."""
        with self._lock:
            return {
                'boxes': self.session.box_count(),
                'items': self.session.total_items(),
            }

    def generate_export(self) -> Path:
        """
        Write the packing list for everything scanned so far.

        Returns:
            Path of the exported .xlsx file.

        Raises:
            ExportWriteError: If the file could not be written.
            ExportFormatError: If the rows could not be encoded.
        """
        rows = build_rows(self.snapshot())
        logger.info(f"Exporting {len(rows)} rows", extra={'extra_data': {'rows': len(rows)}})
        data = serialize(rows)
        return persist(data, self.config.cache_dir, self.config.export_file_name)

    def share_export(self) -> Path:
        """
        Export and hand the file to the desktop.

        Raises:
            ExportWriteError: Export failed; nothing was shared.
            ShareUnavailableError: Nothing accepted the file.
        """
        location = self.generate_export()
        self.share_service.share(location)
        return location

    def email_export(self) -> str:
        """
        Export and open a mail draft pointing at the file.

        Returns:
            The mailto: URL that was opened.

        Raises:
            ExportWriteError: Export failed; no mail was opened.
            MailUnavailableError: The mail link cannot be opened.
        """
        location = self.generate_export()
        return self.mail_service.send(location)
