"""
Fixtures partagées pour les tests.
"""

import copy
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set
from unittest.mock import MagicMock

import pytest
import pytz

# Ajouter la racine du projet au path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from pricing_experiments.interfaces.event_log import EventRecord
from pricing_experiments.models import CandidateVariant

NON_CANCELLED = {"pending", "processing", "shipped", "delivered", "refunded"}


class FakeVariantStore:
    """Store en mémoire avec la même interface que `VariantStore`."""

    def __init__(self, store_id: str = "store-1"):
        self.store_id = store_id
        self.products: Dict[str, Dict[str, Any]] = {}
        self.variants: Dict[str, Dict[str, Any]] = {}
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.order_items: List[Dict[str, Any]] = []
        self.writes: List[tuple] = []
        self.fail_on_update: Optional[str] = None

    def add_product(self, product_id, name="Mug", store_id=None, status="active",
                    available_for_sale=True, created_at=None):
        self.products[product_id] = {
            "name": name,
            "store_id": store_id or self.store_id,
            "status": status,
            "available_for_sale": available_for_sale,
            "created_at": created_at or datetime.now(pytz.UTC),
        }

    def add_variant(self, variant_id, product_id="prod-1", title="Default", price=20.0,
                    compare_at_price=None, inventory_quantity=10, reserved_quantity=0,
                    available_for_sale=True, **product_kwargs):
        if product_id not in self.products:
            self.add_product(product_id, **product_kwargs)
        self.variants[variant_id] = {
            "product_id": product_id,
            "title": title,
            "price": price,
            "compare_at_price": compare_at_price,
            "inventory_quantity": inventory_quantity,
            "reserved_quantity": reserved_quantity,
            "available_for_sale": available_for_sale,
        }

    def add_order(self, order_id, created_at, items, status="delivered", store_id=None):
        """`items` : liste de (variant_id, quantity, total_price)."""
        self.orders[order_id] = {
            "store_id": store_id or self.store_id,
            "status": status,
            "created_at": created_at,
        }
        for variant_id, quantity, total_price in items:
            self.order_items.append(
                {"order_id": order_id, "variant_id": variant_id, "quantity": quantity, "total_price": total_price}
            )

    def _sellable(self, variant_id: str) -> bool:
        variant = self.variants.get(variant_id)
        if not variant:
            return False
        product = self.products[variant["product_id"]]
        return product["status"] == "active" and product["available_for_sale"]

    def list_order_lines(self, since, until=None, variant_ids=None, sellable_only=False):
        lines = []
        for item in self.order_items:
            order = self.orders[item["order_id"]]
            if order["store_id"] != self.store_id or order["status"] not in NON_CANCELLED:
                continue
            if order["created_at"] < since or (until is not None and order["created_at"] >= until):
                continue
            if variant_ids is not None and item["variant_id"] not in variant_ids:
                continue
            if sellable_only and not self._sellable(item["variant_id"]):
                continue
            lines.append(dict(item, created_at=order["created_at"].isoformat()))
        return lines

    def list_recent_sellable_variant_ids(self, limit: int) -> List[str]:
        products = sorted(
            (
                (pid, p) for pid, p in self.products.items()
                if p["store_id"] == self.store_id and p["status"] == "active" and p["available_for_sale"]
            ),
            key=lambda item: item[1]["created_at"],
            reverse=True,
        )
        ids = []
        for product_id, _ in products:
            for variant_id, variant in self.variants.items():
                if variant["product_id"] == product_id and variant["available_for_sale"]:
                    ids.append(variant_id)
        return ids[:limit]

    def get_sellable_variants(self, variant_ids: Sequence[str], limit: int) -> List[Dict[str, Any]]:
        rows = []
        for variant_id in variant_ids:
            variant = self.variants.get(variant_id)
            if not variant or not variant["available_for_sale"]:
                continue
            product = self.products[variant["product_id"]]
            if product["store_id"] != self.store_id or not self._sellable(variant_id):
                continue
            rows.append(
                {
                    "variant_id": variant_id,
                    "product_id": variant["product_id"],
                    "product_name": product["name"],
                    "variant_title": variant["title"],
                    "price": variant["price"],
                    "compare_at_price": variant["compare_at_price"],
                    "inventory_quantity": variant["inventory_quantity"],
                    "reserved_quantity": variant["reserved_quantity"],
                }
            )
        return rows[:limit]

    def get_variant_ids_in_scope(self, variant_ids: Iterable[str]) -> Set[str]:
        return {
            variant_id for variant_id in variant_ids
            if variant_id in self.variants
            and self.products[self.variants[variant_id]["product_id"]]["store_id"] == self.store_id
        }

    def update_variant_price(self, variant_id, price, compare_at_price):
        if self.fail_on_update == variant_id:
            raise RuntimeError(f"update failed for {variant_id}")
        self.variants[variant_id]["price"] = round(price, 2)
        self.variants[variant_id]["compare_at_price"] = (
            round(compare_at_price, 2) if compare_at_price is not None else None
        )
        self.writes.append((variant_id, price, compare_at_price))


class FakeEventLog:
    """Journal en mémoire, relu du plus récent au plus ancien."""

    def __init__(self):
        self.records: List[EventRecord] = []
        self.appended: List[tuple] = []
        self.requested_limits: List[int] = []

    def append(self, event_type, properties, user_id=None, created_at=None):
        record = EventRecord(
            event_type=event_type,
            properties=copy.deepcopy(properties),
            created_at=created_at or datetime.now(pytz.UTC),
        )
        self.records.insert(0, record)
        self.appended.append((event_type, user_id))

    def list_recent_by_types(self, event_types, limit):
        self.requested_limits.append(limit)
        return [r for r in self.records if r.event_type in event_types][:limit]


@pytest.fixture
def now():
    return datetime.now(pytz.UTC)


@pytest.fixture
def store():
    return FakeVariantStore()


@pytest.fixture
def event_log():
    return FakeEventLog()


@pytest.fixture
def make_candidate():
    def _make(**overrides):
        data = {
            "variant_id": "var-1",
            "product_id": "prod-1",
            "product_name": "Mug",
            "variant_title": "Default",
            "current_price": 20.0,
            "current_compare_at_price": None,
            "inventory_quantity": 10,
            "reserved_quantity": 0,
            "units_30d": 10,
            "revenue_30d": 200.0,
            "order_count_30d": 8,
        }
        data.update(overrides)
        return CandidateVariant(**data)

    return _make


@pytest.fixture
def sample_assignment_payload():
    return {
        "variantId": "var-1",
        "productId": "prod-1",
        "productName": "Mug",
        "variantTitle": "Default",
        "baselinePrice": 30.0,
        "baselineCompareAtPrice": None,
        "proposedPrice": 28.99,
        "deltaPercent": -3.37,
        "rationale": "No recent revenue; test demand activation discount.",
    }


@pytest.fixture
def mock_supabase_client():
    """Mock du client Supabase ; chaque méthode de requête renvoie la requête."""
    client = MagicMock()
    query = MagicMock()
    for method in ("select", "eq", "in_", "gte", "lt", "order", "limit", "range", "insert", "update"):
        getattr(query, method).return_value = query
    query.execute.return_value.data = []
    client.table.return_value = query
    client.query = query
    return client
