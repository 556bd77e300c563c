"""
Marketplace Service

Product listing for the marketplace widget and the per-user cart.
"""

import logging
from typing import Dict, List, Optional

from agrimarket.errors import PersistenceError
from agrimarket.gateway.base import DataGateway
from agrimarket.models.market import Product
from agrimarket.models.profile import Profile
from agrimarket.schemas.widgets import CartLine, CartView, ProductCard, ProductItem
from agrimarket.services.samples import SAMPLE_PRODUCTS

logger = logging.getLogger(__name__)

ALL = "all"


def _sample_items() -> List[ProductItem]:
    return [
        ProductItem(
            id=f"sample-{index}",
            supplier_id=f"supplier-{index}",
            supplier_name=f"Verified Supplier {index + 1}",
            supplier_verified=True,
            currency="USD",
            **fields,
        )
        for index, fields in enumerate(SAMPLE_PRODUCTS)
    ]


class MarketplaceService:
    """In-stock products by category and name search, newest first."""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def load(self, category: Optional[str] = ALL, search: Optional[str] = None, compact: bool = False) -> ProductCard:
        limit = 6 if compact else 20

        query = (
            self.gateway.table(Product)
            .gt("stock_quantity", 0)
            .order("created_at", descending=True)
            .limit(limit)
        )
        if category and category != ALL:
            query = query.eq("category", category)
        if search:
            query = query.ilike("name", f"%{search}%")

        try:
            rows = await query.all()
            items = await self._with_suppliers(rows)
        except PersistenceError as e:
            logger.error(f"Error fetching products: {str(e)}")
            return ProductCard(
                products=self._placeholder(category, search, limit),
                sample=True,
                degraded=True,
                notice="Unable to fetch marketplace products.",
            )

        if not items:
            return ProductCard(products=self._placeholder(category, search, limit), sample=True)
        return ProductCard(products=items)

    async def _with_suppliers(self, rows: List[Product]) -> List[ProductItem]:
        supplier_ids = sorted({row.supplier_id for row in rows})
        suppliers: Dict[str, Profile] = {}
        for supplier_id in supplier_ids:
            supplier = await self.gateway.get(Profile, supplier_id)
            if supplier is not None:
                suppliers[supplier_id] = supplier

        items = []
        for row in rows:
            supplier = suppliers.get(row.supplier_id)
            items.append(ProductItem(
                id=str(row.id),
                name=row.name,
                category=row.category,
                description=row.description,
                price=row.price,
                currency=row.currency,
                stock_quantity=row.stock_quantity,
                is_organic=row.is_organic,
                specifications={k: str(v) for k, v in (row.specifications or {}).items()},
                supplier_id=row.supplier_id,
                supplier_name=supplier.full_name if supplier else None,
                supplier_verified=supplier.is_verified if supplier else False,
            ))
        return items

    def _placeholder(self, category: Optional[str], search: Optional[str], limit: int) -> List[ProductItem]:
        items = _sample_items()
        if category and category != ALL:
            items = [p for p in items if p.category == category]
        if search:
            items = [p for p in items if search.lower() in p.name.lower()]
        return items[:limit]


class CartStore:
    """In-memory carts keyed by user; quantities per product id."""

    def __init__(self):
        self.carts: Dict[str, Dict[str, int]] = {}

    def add(self, user_id: str, product_id: str, quantity: int = 1) -> CartView:
        cart = self.carts.setdefault(user_id, {})
        cart[product_id] = cart.get(product_id, 0) + quantity
        return self.view(user_id)

    def remove(self, user_id: str, product_id: str) -> CartView:
        self.carts.get(user_id, {}).pop(product_id, None)
        return self.view(user_id)

    def clear(self, user_id: str) -> CartView:
        self.carts.pop(user_id, None)
        return self.view(user_id)

    def view(self, user_id: str) -> CartView:
        cart = self.carts.get(user_id, {})
        return CartView(
            items=[CartLine(product_id=pid, quantity=qty) for pid, qty in cart.items()],
            total_items=sum(cart.values()),
        )
