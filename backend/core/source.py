"""
Reading and writing the watched inventory workbook.

The watched file is the only persistence the sync pipeline has. Reads decode
the first sheet (or the CSV table) into raw rows keyed by the header labels;
writes always go through an atomic replace so the watcher never observes a
half-written file that we produced ourselves.

Supported formats:
- Excel (.xlsx, .xlsm)
- CSV (.csv)
"""
import csv
import io
import logging
import os
import tempfile
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union

from openpyxl import Workbook, load_workbook

from .normalize import RawRow

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}
CSV_EXTENSIONS = {".csv"}
ALLOWED_EXTENSIONS = EXCEL_EXTENSIONS | CSV_EXTENSIONS

SAMPLE_HEADERS = ["id", "name", "category", "quantity", "price", "supplier", "dateAdded"]
SAMPLE_ROWS = [
    ["PID-001", "Quantum Processor", "Electronics", 120, 250.00, "SynthCore", "2023-10-15"],
    ["PID-002", "Hydrogel Packs", "Medical", 45, 30.50, "BioGen", "2023-11-02"],
    ["PID-003", "Carbon Nanotubes", "Materials", 0, 1200.00, "NanoWorks", "2023-09-20"],
    ["PID-004", "Ionic Power Cells", "Energy", 200, 150.75, "Voltacorp", "2023-11-10"],
    ["PID-005", "Data Crystal Shards", "Electronics", 500, 75.00, "SynthCore", "2023-08-01"],
    ["PID-006", "Auto-Suture Kits", "Medical", 15, 55.20, "BioGen", "2023-11-18"],
    ["PID-007", "Graphene Sheets", "Materials", 300, 800.00, "NanoWorks", "2023-10-05"],
]


class SourceDecodeError(Exception):
    """The watched file exists but could not be decoded as a table."""

    def __init__(self, path: Path, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Could not decode {path.name}: {cause}")


# =============================================================================
# Table decoding
# =============================================================================

def _cell_value(value: Any) -> Any:
    """Render a decoded cell as a RawRow scalar (string or number)."""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    return value


def _header_labels(header: Sequence[Any]) -> List[Optional[str]]:
    """Header labels with blanks as None and duplicates suffixed _1, _2, ..."""
    labels: List[Optional[str]] = []
    seen: Dict[str, int] = {}
    for raw in header:
        if raw is None or str(raw).strip() == "":
            labels.append(None)
            continue
        label = str(_cell_value(raw))
        if label in seen:
            seen[label] += 1
            label = f"{label}_{seen[label]}"
        else:
            seen[label] = 0
        labels.append(label)
    return labels


def rows_from_table(table: Iterable[Sequence[Any]]) -> List[RawRow]:
    """
    Turn a header row plus data rows into raw rows.

    Empty cells are left out of the row, and rows with no values at all are
    skipped entirely.
    """
    it: Iterator[Sequence[Any]] = iter(table)
    header = next(it, None)
    if header is None:
        return []
    labels = _header_labels(header)

    rows: List[RawRow] = []
    for values in it:
        row: RawRow = {}
        for label, value in zip(labels, values):
            if label is None or value is None or value == "":
                continue
            row[label] = _cell_value(value)
        if row:
            rows.append(row)
    return rows


def decode_workbook(content: bytes) -> List[RawRow]:
    """Decode the first worksheet of an xlsx payload."""
    # Not read_only: read-only sheets trust the stored dimension, which some exporters get wrong
    wb = load_workbook(io.BytesIO(content), data_only=True)
    try:
        if not wb.worksheets:
            return []
        ws = wb.worksheets[0]
        return rows_from_table(ws.iter_rows(values_only=True))
    finally:
        wb.close()


def decode_csv(content: bytes) -> List[RawRow]:
    text = content.decode("utf-8-sig")
    return rows_from_table(csv.reader(io.StringIO(text, newline="")))


def encode_workbook(rows: Sequence[RawRow], sheet_title: str = "Inventory") -> bytes:
    headers = _union_headers(rows)
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title
    ws.append(headers)
    for row in rows:
        ws.append([row.get(h) for h in headers])
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def encode_csv(rows: Sequence[RawRow]) -> bytes:
    headers = _union_headers(rows)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue().encode("utf-8")


def _union_headers(rows: Sequence[RawRow]) -> List[str]:
    headers: List[str] = []
    for row in rows:
        for key in row:
            if key not in headers:
                headers.append(key)
    return headers


# =============================================================================
# Source reader
# =============================================================================

class SourceReader:
    """Reads and atomically replaces the watched inventory file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def is_csv(self) -> bool:
        return self.path.suffix.lower() in CSV_EXTENSIONS

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> List[RawRow]:
        """
        Decode the current file contents.

        A missing file is an empty inventory. A file that exists but cannot
        be decoded raises SourceDecodeError.
        """
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"[Source] {self.path} does not exist, treating as empty")
            return []
        except OSError as e:
            raise SourceDecodeError(self.path, e) from e

        try:
            rows = decode_csv(content) if self.is_csv else decode_workbook(content)
        except Exception as e:
            raise SourceDecodeError(self.path, e) from e

        logger.info(f"[Source] Read {len(rows)} rows from {self.path.name}")
        if rows:
            logger.debug(f"[Source] Sample row: {rows[0]}")
        return rows

    def read_all(self) -> List[RawRow]:
        """Like load(), but a decode failure is logged and yields no rows."""
        try:
            return self.load()
        except SourceDecodeError as e:
            logger.error(f"[Source] Error reading inventory file: {e}")
            return []

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def replace(self, content: bytes) -> None:
        """Atomically overwrite the watched file with new content."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=".upload-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def write_rows(self, rows: Sequence[RawRow], sheet_title: str = "Inventory") -> None:
        """Encode rows in the watched file's format and replace it."""
        if self.is_csv:
            content = encode_csv(rows)
        else:
            content = encode_workbook(rows, sheet_title=sheet_title)
        self.replace(content)

    def ensure_sample(self) -> bool:
        """Create the sample inventory if the watched file is missing."""
        if self.path.exists():
            return False
        rows = [dict(zip(SAMPLE_HEADERS, values)) for values in SAMPLE_ROWS]
        self.write_rows(rows)
        logger.info(f"Sample inventory file created at: {self.path}")
        return True
