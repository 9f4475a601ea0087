"""
Packing list export: session snapshot -> rows -> .xlsx bytes -> cache file.

The spreadsheet has one sheet and four columns:

    | Barcode | Quantity | Box Barcode | Has KIZ |
    |---------|----------|-------------|---------|
    | ABC123  | 2        | WB_100      | нет     |

One row per (box, product) pair. Barcodes are stored as text so long
numeric EAN codes survive the round trip through Excel unchanged.
"""

import io
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Union

import pandas as pd
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils.escape import unescape
from openpyxl.utils.exceptions import IllegalCharacterError

from exceptions import ExportFormatError, ExportWriteError
from logger import get_logger
from scan_session import ProductTally

logger = get_logger(__name__)

SHEET_NAME = "My Sheet"

COL_BARCODE = "Barcode"
COL_QUANTITY = "Quantity"
COL_BOX = "Box Barcode"
COL_HAS_KIZ = "Has KIZ"
EXPORT_COLUMNS = [COL_BARCODE, COL_QUANTITY, COL_BOX, COL_HAS_KIZ]

# Excel column widths, in the order of EXPORT_COLUMNS
COLUMN_WIDTHS = {"A": 32, "B": 10, "C": 32, "D": 10}

MARKING_YES = "да"
MARKING_NO = "нет"

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# A literal "_xHHHH_" in a code would be read back as an escape sequence
_ESCAPE_LOOKALIKE_RE = re.compile(r"_(?=x[0-9A-Fa-f]{4}_)")


def _escape_cell_text(value: str) -> str:
    """
    Make a scanned code storable in a worksheet cell.

    GS1 DataMatrix codes (KIZ) carry the GS separator (0x1D), which openpyxl
    refuses to write. Control characters are stored in the OOXML _xHHHH_
    form instead; read_rows() turns them back with openpyxl's unescape().
    """
    value = _ESCAPE_LOOKALIKE_RE.sub("_x005f_", value)
    return ILLEGAL_CHARACTERS_RE.sub(lambda match: "_x{:04x}_".format(ord(match.group(0))), value)


@dataclass(frozen=True)
class ExportRow:
    """One line of the packing list."""
    barcode: str
    quantity: int
    box_id: str
    has_marking: bool


class ExportRows:
    """
    Rows of a session snapshot, produced lazily.

    Iterating twice yields the same rows again. Order is box id ascending,
    then product barcode ascending.
    """

    def __init__(self, snapshot: Dict[str, ProductTally]):
        self._snapshot = snapshot

    def __iter__(self) -> Iterator[ExportRow]:
        for box_id in sorted(self._snapshot):
            tally = self._snapshot[box_id]
            for barcode in sorted(tally):
                record = tally[barcode]
                yield ExportRow(
                    barcode=record.barcode,
                    quantity=record.quantity,
                    box_id=box_id,
                    has_marking=record.has_marking,
                )

    def __len__(self) -> int:
        return sum(len(tally) for tally in self._snapshot.values())


def build_rows(snapshot: Dict[str, ProductTally]) -> ExportRows:
    """Flatten a snapshot (see ScanSession.snapshot) into export rows."""
    return ExportRows(snapshot)


def serialize(rows: Iterable[ExportRow]) -> bytes:
    """
    Encode rows as an .xlsx workbook.

    Args:
        rows: Rows to write, typically from build_rows().

    Returns:
        The workbook file content.

    Raises:
        ExportFormatError: If the rows cannot be encoded as a workbook.
    """
    df = pd.DataFrame(
        [
            [
                _escape_cell_text(row.barcode),
                int(row.quantity),
                _escape_cell_text(row.box_id),
                MARKING_YES if row.has_marking else MARKING_NO,
            ]
            for row in rows
        ],
        columns=EXPORT_COLUMNS,
    )

    buffer = io.BytesIO()
    try:
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=SHEET_NAME)
            worksheet = writer.sheets[SHEET_NAME]
            for column_letter, width in COLUMN_WIDTHS.items():
                worksheet.column_dimensions[column_letter].width = width
            for barcode_cell, _, box_cell, _ in worksheet.iter_rows(min_row=2, max_row=worksheet.max_row):
                for cell in (barcode_cell, box_cell):
                    cell.number_format = '@'
                    # openpyxl turns "=..." into a formula and "#N/A" into an error
                    cell.data_type = 's'
    except (IllegalCharacterError, ValueError) as e:
        logger.error(f"Failed to build packing list workbook: {e}", exc_info=True)
        raise ExportFormatError(str(e)) from e

    data = buffer.getvalue()
    logger.debug(f"Serialized {len(df)} rows into {len(data)} bytes")
    return data


def read_rows(source: Union[bytes, str, Path]) -> List[ExportRow]:
    """
    Decode a packing list produced by serialize().

    Args:
        source: Workbook bytes or a path to an .xlsx file.

    Returns:
        Rows in sheet order.

    Raises:
        ValueError: If the workbook cannot be read or lacks the export columns.
    """
    excel_source = io.BytesIO(source) if isinstance(source, bytes) else source

    try:
        # Codes such as "NA" or "null" must stay strings
        df = pd.read_excel(excel_source, sheet_name=0, dtype=str, keep_default_na=False, na_filter=False)
    except Exception as e:
        logger.error(f"Failed to read packing list: {e}")
        raise ValueError(f"Could not read the Excel file: {e}")

    missing = [col for col in EXPORT_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"The file is missing required columns: {', '.join(missing)}")

    rows = []
    for _, line in df.iterrows():
        rows.append(ExportRow(
            barcode=unescape(line[COL_BARCODE]),
            quantity=int(float(line[COL_QUANTITY])),
            box_id=unescape(line[COL_BOX]),
            has_marking=line[COL_HAS_KIZ] == MARKING_YES,
        ))
    return rows


def persist(data: bytes, cache_dir: Union[str, Path], file_name: str = "PackingList.xlsx") -> Path:
    """
    Write the workbook into the cache directory.

    The file is written to a temporary name first and moved into place, so a
    failed export never leaves a truncated packing list behind.

    Args:
        data: Workbook bytes from serialize().
        cache_dir: Directory for transient export files (created if missing).
        file_name: Name of the exported file; an existing file is replaced.

    Returns:
        Path of the written file.

    Raises:
        ExportWriteError: If the directory or the file cannot be written.
    """
    target = Path(cache_dir) / file_name
    tmp_path = None

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode='wb',
            dir=target.parent,
            prefix='.tmp_export_',
            suffix='.xlsx',
            delete=False
        ) as tmp_file:
            tmp_file.write(data)
            tmp_path = tmp_file.name

        shutil.move(tmp_path, target)
    except OSError as e:
        logger.error(f"Failed to write export to {target}: {e}", exc_info=True)
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise ExportWriteError(str(e), path=str(target)) from e

    logger.info(
        f"Packing list written to {target} ({len(data)} bytes)",
        extra={'extra_data': {'path': str(target), 'size': len(data)}}
    )
    return target
