import re
from typing import Iterable, Optional

from inventory_sync.sync.models import MatchResult, MatchRule

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_title(title: str) -> str:
    return _NON_ALNUM_RE.sub("", (title or "").lower())


def _variant_skus(product: dict) -> set[str]:
    return {v.get("sku") for v in product.get("variants") or [] if v.get("sku")}


def _variant_names(product: dict) -> list[str]:
    return sorted(v.get("title") or "" for v in product.get("variants") or [])


def _titles_similar(a: str, b: str) -> bool:
    a, b = normalize_title(a), normalize_title(b)
    if not a or not b:
        return False
    return a == b or a in b or b in a


def find_product_match(
    name: str,
    skus: Iterable[str],
    variant_names: Iterable[str],
    products: list[dict],
) -> Optional[MatchResult]:
    """
    Pick the Shopify product for a Square item. Rules are tried in order
    and the first candidate satisfying a rule wins:

      1. any of the item's SKUs is a variant SKU of the product
      2. case-insensitive exact title
      3. alphanumeric-only title equal, or one contained in the other
      4. same sorted list of variant names
    """
    wanted_skus = {s for s in skus if s}
    if wanted_skus:
        for p in products:
            if wanted_skus & _variant_skus(p):
                return MatchResult(product=p, rule=MatchRule.SKU)

    lowered = (name or "").lower()
    if lowered:
        for p in products:
            if (p.get("title") or "").lower() == lowered:
                return MatchResult(product=p, rule=MatchRule.EXACT_TITLE)

    for p in products:
        if _titles_similar(p.get("title") or "", name):
            return MatchResult(product=p, rule=MatchRule.NORMALIZED_TITLE)

    names = sorted(n or "" for n in variant_names)
    if names:
        for p in products:
            if _variant_names(p) == names:
                return MatchResult(product=p, rule=MatchRule.VARIANT_NAMES)

    return None


def match_square_item(item, products: list[dict]) -> Optional[MatchResult]:
    """`find_product_match` for a square.models.CatalogItem."""
    return find_product_match(
        item.name,
        [v.sku for v in item.variations],
        [v.name for v in item.variations],
        products,
    )


def find_variant(product: dict, sku: str | None, title: str | None) -> Optional[dict]:
    """Variant of `product` with the same SKU, else the same variant title."""
    for v in product.get("variants") or []:
        if sku and v.get("sku") == sku:
            return v
    for v in product.get("variants") or []:
        if title and v.get("title") == title:
            return v
    return None
