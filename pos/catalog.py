"""
Product lookup for the till.

Holds the last product list fetched from the store API and resolves what
the operator types into products that can be sold (active, stock > 0):
  1. Product id, then SKU exact match (case-insensitive)
  2. Name substring match (case-insensitive)
  3. Fuzzy name match (using rapidfuzz)
"""
import logging
from typing import Optional

from rapidfuzz import fuzz

from models.product import Product
from .client import StoreApiClient

logger = logging.getLogger(__name__)

# Minimum fuzzy score (0-100) to accept a name match
FUZZY_THRESHOLD = 70


class ProductCatalog:
    def __init__(
        self,
        products: Optional[list[Product]] = None,
        api: Optional[StoreApiClient] = None,
        fuzzy_threshold: int = FUZZY_THRESHOLD,
    ):
        self.api = api
        self.fuzzy_threshold = fuzzy_threshold
        self.products: list[Product] = list(products or [])

    def refresh(self) -> list[Product]:
        """Re-fetch the product list. Used as a post-checkout refresh hook."""
        if self.api is None:
            return self.products
        self.products = self.api.products()
        logger.info("Loaded %d products", len(self.products))
        return self.products

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, product_id: int) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)

    def by_sku(self, sku: str) -> Optional[Product]:
        sku = sku.strip().lower()
        return next((p for p in self.products if p.sku and p.sku.lower() == sku), None)

    def sellable(self, category: Optional[str] = None) -> list[Product]:
        return [
            p for p in self.products
            if p.sellable and (not category or p.category == category)
        ]

    def search(self, term: str, category: Optional[str] = None) -> list[Product]:
        """
        Sellable products matching term, best first. Substring hits come
        before fuzzy hits; an empty term lists everything sellable.
        """
        candidates = self.sellable(category)
        term = (term or "").strip().lower()
        if not term:
            return candidates

        exact = [p for p in candidates if term in p.name.lower()]
        if exact:
            return exact

        scored = []
        for p in candidates:
            score = fuzz.partial_ratio(term, p.name.lower())
            if score >= self.fuzzy_threshold:
                scored.append((score, p))
        scored.sort(key=lambda sp: sp[0], reverse=True)
        if scored:
            logger.debug("Fuzzy product match for '%s': %s (score=%d)",
                         term, scored[0][1].name, scored[0][0])
        return [p for _, p in scored]

    def resolve(self, ref: str) -> Optional[Product]:
        """
        Resolve an operator reference: a numeric product id, a SKU,
        or a name (best search hit).
        """
        ref = (ref or "").strip()
        if not ref:
            return None
        if ref.isdigit():
            product = self.get(int(ref))
            if product:
                return product
        product = self.by_sku(ref)
        if product:
            return product
        hits = self.search(ref)
        return hits[0] if hits else None
