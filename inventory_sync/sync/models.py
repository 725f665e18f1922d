from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class InventoryRecord(BaseModel):
    sku: str
    quantity: int = 0


class SoldItem(BaseModel):
    title: str
    size: str = ""
    sku: str
    quantity: int = 0


class ItemStatus(str, Enum):
    PENDING = "pending"
    FOUND = "found"
    NOT_FOUND = "not_found"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    SKIPPED = "skipped"


SUCCESS_STATUSES = {ItemStatus.UPDATED, ItemStatus.UNCHANGED}


class ItemResult(BaseModel):
    key: str
    status: ItemStatus
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in SUCCESS_STATUSES


class MatchRule(str, Enum):
    SKU = "sku"
    EXACT_TITLE = "exact_title"
    NORMALIZED_TITLE = "normalized_title"
    VARIANT_NAMES = "variant_names"


class MatchResult(BaseModel):
    product: dict
    rule: MatchRule


class BatchSummary(BaseModel):
    submitted: int = 0
    skipped: int = 0
    results: List[ItemResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def count(self, status: ItemStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    def failed_keys(self) -> list[str]:
        return [r.key for r in self.results if not r.ok]

    def as_dict(self) -> dict[str, Any]:
        return {
            "submitted": self.submitted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "updated": self.count(ItemStatus.UPDATED),
            "unchanged": self.count(ItemStatus.UNCHANGED),
            "not_found": self.count(ItemStatus.NOT_FOUND),
            "failed_keys": self.failed_keys(),
        }


def parse_inventory_text(raw: str) -> list[InventoryRecord]:
    """
    Parse `SKU<TAB>QTY` lines. Blank lines and lines without a SKU are
    dropped; an unparseable quantity becomes 0.
    """
    records = []
    for line in (raw or "").splitlines():
        parts = line.strip().split("\t")
        sku = parts[0].strip() if parts else ""
        if not sku:
            continue
        records.append(InventoryRecord(sku=sku, quantity=_to_int(parts[1] if len(parts) > 1 else None)))
    return records


def parse_sold_items_text(raw: str) -> list[SoldItem]:
    """Parse `TITLE<TAB>SIZE<TAB>SKU<TAB>QTY` lines."""
    items = []
    for line in (raw or "").splitlines():
        if not line.strip():
            continue
        parts = [p.strip() for p in line.split("\t")]
        if len(parts) < 4 or not parts[2]:
            continue
        title, size, sku, qty = parts[:4]
        items.append(SoldItem(title=title, size=size, sku=sku, quantity=_to_int(qty)))
    return items


def _to_int(value) -> int:
    # parseInt-like: leading integer digits, anything else -> 0
    if value is None:
        return 0
    s = str(value).strip()
    digits = ""
    for i, ch in enumerate(s):
        if ch.isdigit() or (i == 0 and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return 0
