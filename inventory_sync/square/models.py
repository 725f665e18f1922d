from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class CatalogVariation(BaseModel):
    id: str
    name: str = ""
    sku: Optional[str] = None
    price_cents: Optional[int] = None

    @property
    def price(self) -> str:
        """Dollar string Shopify accepts, e.g. 1999 -> "19.99"."""
        cents = self.price_cents or 0
        return str((Decimal(cents) / 100).quantize(Decimal("0.01")))


class CatalogItem(BaseModel):
    id: str
    name: str
    description: str = ""
    category: Optional[str] = None
    variations: List[CatalogVariation] = []

    @classmethod
    def from_catalog_object(cls, obj: dict) -> "CatalogItem":
        data = obj.get("item_data") or {}
        variations = []
        for v in data.get("variations") or []:
            vdata = v.get("item_variation_data") or {}
            money = vdata.get("price_money") or {}
            amount = money.get("amount")
            variations.append(CatalogVariation(
                id=v["id"],
                name=vdata.get("name") or "",
                sku=vdata.get("sku") or None,
                price_cents=int(amount) if amount is not None else None,
            ))
        return cls(
            id=obj["id"],
            name=data.get("name") or "",
            description=data.get("description") or "",
            category=(data.get("category") or {}).get("name"),
            variations=variations,
        )

    def variation_ids(self) -> list[str]:
        return [v.id for v in self.variations]

    def stock(self, counts: dict[str, int]) -> int:
        return sum(max(counts.get(v.id, 0), 0) for v in self.variations)
