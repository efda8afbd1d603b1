"""
Record normalization for rows decoded from the inventory workbook.

Rows arrive keyed by whatever header labels the sheet used. Each canonical
field is resolved through an ordered alias list, numeric fields are coerced
and the stock status is derived from quantity. Normalization never fails:
missing or malformed values fall back to defaults.

The same functions are used by the server (records endpoint) and by the
client reconciler, so there is one alias table for both sides of the wire.
"""
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

RawRow = Dict[str, Any]

DEFAULT_NAME = "Unknown Product"
DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_SUPPLIER = "Unknown Supplier"

LOW_STOCK_THRESHOLD = 50

# Order matters: the first alias present in a row wins.
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "id": ("id", "pid", "product id", "item id"),
    "name": ("name", "product name", "item name", "product"),
    "category": ("category", "type", "group"),
    "quantity": ("quantity", "qty", "stock", "amount"),
    "price": ("price", "cost", "unit price", "rate"),
    "supplier": ("supplier", "vendor", "source", "manufacturer"),
    "dateAdded": ("dateadded", "date", "added", "created"),
}

# Plain decimal or scientific notation only; no currency, separators or underscores.
_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


class ProductStatus(str, Enum):
    IN_STOCK = "In Stock"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"


@dataclass
class InventoryRecord:
    """Canonical inventory entry. `status` is always derived from `quantity`."""
    id: str
    name: str
    category: str
    quantity: int
    price: float
    supplier: str
    date_added: str
    status: ProductStatus

    def to_dict(self) -> Dict[str, Any]:
        """Wire/JSON shape, camelCase like the dashboard expects."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "price": self.price,
            "supplier": self.supplier,
            "status": self.status.value,
            "dateAdded": self.date_added,
        }


# =============================================================================
# Field helpers
# =============================================================================

def normalize_header(header: Any) -> str:
    """Lowercase and trim a column label for alias matching."""
    if header is None:
        return ""
    return str(header).strip().lower()


def find_key(row: Mapping[str, Any], aliases: Sequence[str]) -> Optional[str]:
    """
    Return the row's own label for the first alias it carries, or None.

    Aliases are tried in order, so a row carrying both `quantity` and `qty`
    always resolves to `quantity` regardless of column order.
    """
    keys = {}
    for key in row:
        # First column wins when two labels normalize to the same alias
        keys.setdefault(normalize_header(key), key)
    for alias in aliases:
        if alias in keys:
            return keys[alias]
    return None


def find_value(row: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    key = find_key(row, aliases)
    return None if key is None else row[key]


def to_number(value: Any) -> float:
    """Coerce a cell value to a finite number; anything else becomes 0."""
    if value is None or value == "":
        return 0.0
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            cleaned = value.strip()
            if not _NUMBER_RE.match(cleaned):
                return 0.0
            number = float(cleaned)
        else:
            return 0.0
    except OverflowError:
        # Integers too large for a float (long digit strings in a cell)
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def derive_status(quantity: int) -> ProductStatus:
    if quantity <= 0:
        return ProductStatus.OUT_OF_STOCK
    if quantity <= LOW_STOCK_THRESHOLD:
        return ProductStatus.LOW_STOCK
    return ProductStatus.IN_STOCK


def _to_text(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _today_iso() -> str:
    return datetime.now(timezone.utc).date().isoformat()


# =============================================================================
# Normalization
# =============================================================================

def normalize_row(row: Mapping[str, Any], today: Optional[str] = None) -> InventoryRecord:
    """Map one raw row onto an InventoryRecord."""
    quantity = max(int(to_number(find_value(row, FIELD_ALIASES["quantity"]))), 0)
    price = max(to_number(find_value(row, FIELD_ALIASES["price"])), 0.0)

    return InventoryRecord(
        id=_to_text(find_value(row, FIELD_ALIASES["id"]), ""),
        name=_to_text(find_value(row, FIELD_ALIASES["name"]), DEFAULT_NAME),
        category=_to_text(find_value(row, FIELD_ALIASES["category"]), DEFAULT_CATEGORY),
        quantity=quantity,
        price=price,
        supplier=_to_text(find_value(row, FIELD_ALIASES["supplier"]), DEFAULT_SUPPLIER),
        date_added=_to_text(find_value(row, FIELD_ALIASES["dateAdded"]), today or _today_iso()),
        status=derive_status(quantity),
    )


def normalize_rows(rows: Iterable[Mapping[str, Any]], today: Optional[str] = None) -> List[InventoryRecord]:
    today = today or _today_iso()
    return [normalize_row(row, today=today) for row in rows]


def record_to_row(record: InventoryRecord) -> RawRow:
    """Encode a record as a row with canonical headers (status is not written)."""
    return {
        "id": record.id,
        "name": record.name,
        "category": record.category,
        "quantity": record.quantity,
        "price": record.price,
        "supplier": record.supplier,
        "dateAdded": record.date_added,
    }
