"""
In-memory state of one scanning session.

A session holds the currently open box and, for every box scanned so far,
a tally of product barcodes and how many times each was counted:

    boxes = {
        "WB_100": {
            "ABC123": ProductRecord(barcode="ABC123", quantity=2, has_marking=False),
        },
    }

What the next decode event means is decided by a single ScanMode:

    IDLE ──request_new_box()──> AWAITING_NEW_BOX_SCAN ──valid box code──> IDLE
    IDLE ──request_product_scan()──> AWAITING_PRODUCT_SCAN ──product counted──> IDLE

Product scans disarm the session after each accepted code, so a scanner that
keeps reporting the same barcode for several frames counts it only once.

The session is never persisted; it lives for the lifetime of the process.
"""

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from app_config import DEFAULT_BOX_PREFIX
from exceptions import InvalidBoxCodeError, NoActiveBoxError

# Outcomes of on_decode() that are not errors
STATUS_NOT_ARMED = "NOT_ARMED"
STATUS_EMPTY_CODE = "EMPTY_CODE"
STATUS_BOX_STARTED = "BOX_STARTED"
STATUS_BOX_CODE_IGNORED = "BOX_CODE_IGNORED"
STATUS_PRODUCT_COUNTED = "PRODUCT_COUNTED"


class ScanMode(Enum):
    """How the next decode event is interpreted."""
    IDLE = "idle"
    AWAITING_NEW_BOX_SCAN = "awaiting_new_box_scan"
    AWAITING_PRODUCT_SCAN = "awaiting_product_scan"


@dataclass
class ProductRecord:
    """
    Count of one product barcode inside one box.

    Attributes:
        barcode: Product barcode as decoded
        quantity: Number of accepted scans, always >= 1 once stored
        has_marking: Whether the product needs a KIZ marking code; decided
                     once, when the record is created
    """
    barcode: str
    quantity: int = 0
    has_marking: bool = False


ProductTally = Dict[str, ProductRecord]
MarkingPredicate = Callable[[str], bool]


def no_marking(barcode: str) -> bool:
    """Default KIZ rule: no product requires marking."""
    return False


class ScanSession:
    """
    Box -> product -> quantity state machine.

    Attributes:
        current_box_id (str | None): Box that product scans are counted against.
        boxes (Dict[str, ProductTally]): Tallies keyed by box barcode.
        mode (ScanMode): Interpretation of the next decode event.
        box_prefix (str): Prefix that distinguishes box barcodes.
        marking_predicate (MarkingPredicate): Decides has_marking for new records.
    """

    def __init__(self, box_prefix: str = DEFAULT_BOX_PREFIX,
                 marking_predicate: Optional[MarkingPredicate] = None):
        self.box_prefix = box_prefix
        self.marking_predicate = marking_predicate or no_marking
        self.current_box_id: Optional[str] = None
        self.boxes: Dict[str, ProductTally] = {}
        self.mode = ScanMode.IDLE

    def is_box_code(self, code: str) -> bool:
        return code.startswith(self.box_prefix)

    @property
    def is_armed(self) -> bool:
        return self.mode == ScanMode.AWAITING_PRODUCT_SCAN

    def request_new_box(self):
        """Interpret the next decode event as a box barcode."""
        self.mode = ScanMode.AWAITING_NEW_BOX_SCAN

    def request_product_scan(self):
        """Arm the session: the next decode event is counted as a product."""
        self.mode = ScanMode.AWAITING_PRODUCT_SCAN

    def on_decode(self, raw_code: str) -> Tuple[Optional[ProductRecord], str]:
        """
        Apply one decode event to the session.

        Args:
            raw_code: Payload reported by the scanner.

        Returns:
            Tuple of (record, status):
                * (None, "NOT_ARMED") - nothing was requested, event ignored
                * (None, "EMPTY_CODE") - blank payload, event ignored
                * (None, "BOX_STARTED") - code became the current box
                * (None, "BOX_CODE_IGNORED") - box code seen while scanning products
                * (record, "PRODUCT_COUNTED") - record after incrementing

        Raises:
            InvalidBoxCodeError: A box was requested but the code has no box prefix.
            NoActiveBoxError: A product was scanned before any box was started.
        """
        code = raw_code.strip()
        if not code:
            return None, STATUS_EMPTY_CODE

        if self.mode == ScanMode.AWAITING_NEW_BOX_SCAN:
            self._start_box(code)
            return None, STATUS_BOX_STARTED

        if self.mode != ScanMode.AWAITING_PRODUCT_SCAN:
            return None, STATUS_NOT_ARMED

        if self.current_box_id is None:
            raise NoActiveBoxError(code)

        # A box label caught in frame while scanning items is noise, not an error
        if self.is_box_code(code):
            return None, STATUS_BOX_CODE_IGNORED

        record = self._count_product(code)
        self.mode = ScanMode.IDLE
        return record, STATUS_PRODUCT_COUNTED

    def _start_box(self, code: str):
        if not self.is_box_code(code):
            raise InvalidBoxCodeError(code, self.box_prefix)
        # The full code, prefix included, is the box id
        self.current_box_id = code
        self.mode = ScanMode.IDLE

    def _count_product(self, code: str) -> ProductRecord:
        tally = self.boxes.setdefault(self.current_box_id, {})
        record = tally.get(code)
        if record is None:
            record = ProductRecord(barcode=code, has_marking=bool(self.marking_predicate(code)))
            tally[code] = record
        record.quantity += 1
        return record

    def current_tally(self) -> ProductTally:
        """Tally of the current box (empty if no box or nothing scanned yet)."""
        if self.current_box_id is None:
            return {}
        return self.boxes.get(self.current_box_id, {})

    def total_items(self) -> int:
        return sum(r.quantity for tally in self.boxes.values() for r in tally.values())

    def box_count(self) -> int:
        return len(self.boxes)

    def snapshot(self) -> Dict[str, ProductTally]:
        """Deep copy of all tallies, safe to format while scanning continues."""
        return copy.deepcopy(self.boxes)
