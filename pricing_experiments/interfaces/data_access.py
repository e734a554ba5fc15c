"""
Accès aux variantes, produits et commandes d'une boutique.

Ce module fournit une couche d'abstraction entre le moteur d'expérimentation
et la base de données (Supabase/PostgreSQL). Les agrégats (unités, revenu,
commandes distinctes) sont calculés côté moteur à partir des lignes de
commande brutes, PostgREST ne proposant pas de GROUP BY.

Tables utilisées :
- `products` (id, store_id, name, status, available_for_sale, created_at),
- `product_variants` (id, product_id, title, price, compare_at_price,
  inventory_quantity, reserved_quantity, available_for_sale),
- `orders` (id, store_id, status, created_at),
- `order_items` (order_id, variant_id, quantity, total_price).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

from supabase import Client, create_client  # type: ignore

from ..config import ExperimentConfig, Settings, get_default_experiment_config

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000

_supabase_client: Optional[Client] = None


def get_supabase_client(settings: Optional[Settings] = None) -> Client:
    """
    Retourne un client Supabase initialisé (créé une seule fois par process).
    """
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    settings = settings or Settings.from_env()
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError(
            "Les variables d'environnement SUPABASE_URL et SUPABASE_SERVICE_ROLE_KEY/SUPABASE_KEY "
            "doivent être configurées pour utiliser le moteur d'expérimentation."
        )

    _supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return _supabase_client


def _safe_int(value: Any) -> int:
    try:
        if value is None:
            return 0
        return int(value)
    except (TypeError, ValueError):
        return 0


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def response_data(response: Any) -> List[Dict[str, Any]]:
    # Vérifier si response.data existe (compatible avec différentes versions de Supabase)
    if not hasattr(response, "data"):
        raise RuntimeError("Réponse Supabase invalide: pas d'attribut 'data'")
    return response.data or []


def fetch_all_pages(
    build_query: Callable[[], Any],
    limit: Optional[int] = None,
    page_size: int = PAGE_SIZE,
) -> List[Dict[str, Any]]:
    """
    Exécute une requête paginée avec `range()` jusqu'à épuisement ou `limit`.

    `build_query` doit retourner une nouvelle requête à chaque appel : les
    builders postgrest sont mutables.
    """
    rows: List[Dict[str, Any]] = []
    offset = 0

    while limit is None or len(rows) < limit:
        size = page_size if limit is None else min(page_size, limit - len(rows))
        response = build_query().range(offset, offset + size - 1).execute()
        batch = response_data(response)
        rows.extend(batch)
        if len(batch) < size:
            break
        offset += size

    return rows


def _iso(value: datetime) -> str:
    return value.isoformat()


class VariantStore:
    """
    Lecture/écriture des variantes d'une boutique (tenant).

    Toutes les lectures sont restreintes à `store_id`. Les erreurs Supabase
    ne sont pas interceptées : elles remontent à l'appelant.
    """

    def __init__(
        self,
        client: Client,
        store_id: str,
        config: Optional[ExperimentConfig] = None,
    ):
        self.client = client
        self.store_id = store_id
        self.config = config or get_default_experiment_config()

    def list_order_lines(
        self,
        since: datetime,
        until: Optional[datetime] = None,
        variant_ids: Optional[Sequence[str]] = None,
        sellable_only: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Lignes de commande non annulées de la boutique créées dans [since, until).

        Retourne des dicts plats : variant_id, order_id, quantity, total_price,
        created_at.
        """
        if variant_ids is not None and len(variant_ids) == 0:
            return []

        columns = "variant_id, order_id, quantity, total_price, orders!inner(id, store_id, status, created_at)"
        if sellable_only:
            columns += (
                ", product_variants!inner(id, products!inner(status, available_for_sale))"
            )

        def build_query():
            query = (
                self.client.table("order_items")
                .select(columns)
                .eq("orders.store_id", self.store_id)
                .in_("orders.status", list(self.config.non_cancelled_order_statuses))
                .gte("orders.created_at", _iso(since))
            )
            if until is not None:
                query = query.lt("orders.created_at", _iso(until))
            if variant_ids is not None:
                query = query.in_("variant_id", list(variant_ids))
            if sellable_only:
                query = (
                    query.eq("product_variants.products.status", "active")
                    .eq("product_variants.products.available_for_sale", True)
                )
            # Tri stable : sans ORDER BY, range() peut répéter ou sauter des lignes
            return query.order("order_id").order("variant_id")

        lines: List[Dict[str, Any]] = []
        for row in fetch_all_pages(build_query):
            variant_id = row.get("variant_id")
            if not isinstance(variant_id, str) or not variant_id:
                continue
            order = row.get("orders") or {}
            lines.append(
                {
                    "variant_id": variant_id,
                    "order_id": row.get("order_id") or order.get("id"),
                    "quantity": _safe_int(row.get("quantity")),
                    "total_price": _safe_float(row.get("total_price")) or 0.0,
                    "created_at": order.get("created_at"),
                }
            )
        return lines

    def list_recent_sellable_variant_ids(self, limit: int) -> List[str]:
        """Variantes vendables des produits actifs, produits les plus récents d'abord."""
        response = (
            self.client.table("products")
            .select("id, created_at, product_variants!inner(id, available_for_sale)")
            .eq("store_id", self.store_id)
            .eq("status", "active")
            .eq("available_for_sale", True)
            .eq("product_variants.available_for_sale", True)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )

        variant_ids: List[str] = []
        for product in response_data(response):
            for variant in product.get("product_variants") or []:
                variant_id = variant.get("id")
                if isinstance(variant_id, str) and variant_id:
                    variant_ids.append(variant_id)
                if len(variant_ids) >= limit:
                    return variant_ids
        return variant_ids

    def get_sellable_variants(self, variant_ids: Sequence[str], limit: int) -> List[Dict[str, Any]]:
        """Prix, compare-at et stock des variantes vendables demandées."""
        if not variant_ids:
            return []

        response = (
            self.client.table("product_variants")
            .select(
                "id, title, price, compare_at_price, inventory_quantity, reserved_quantity, "
                "products!inner(id, name, store_id, status, available_for_sale)"
            )
            .in_("id", list(variant_ids))
            .eq("available_for_sale", True)
            .eq("products.store_id", self.store_id)
            .eq("products.status", "active")
            .eq("products.available_for_sale", True)
            .limit(limit)
            .execute()
        )

        rows: List[Dict[str, Any]] = []
        for row in response_data(response):
            product = row.get("products") or {}
            rows.append(
                {
                    "variant_id": row.get("id"),
                    "product_id": product.get("id"),
                    "product_name": product.get("name") or "",
                    "variant_title": row.get("title") or "",
                    "price": _safe_float(row.get("price")) or 0.0,
                    "compare_at_price": _safe_float(row.get("compare_at_price")),
                    "inventory_quantity": _safe_int(row.get("inventory_quantity")),
                    "reserved_quantity": _safe_int(row.get("reserved_quantity")),
                }
            )
        return rows

    def get_variant_ids_in_scope(self, variant_ids: Iterable[str]) -> Set[str]:
        """Sous-ensemble des variantes qui appartiennent encore à la boutique."""
        ids = list(dict.fromkeys(variant_ids))
        if not ids:
            return set()

        response = (
            self.client.table("product_variants")
            .select("id, products!inner(store_id)")
            .in_("id", ids)
            .eq("products.store_id", self.store_id)
            .execute()
        )
        return {row["id"] for row in response_data(response) if row.get("id")}

    def update_variant_price(
        self,
        variant_id: str,
        price: float,
        compare_at_price: Optional[float],
    ) -> None:
        """Écrit le prix et le compare-at d'une variante (None efface le compare-at)."""
        self.client.table("product_variants").update(
            {
                "price": f"{price:.2f}",
                "compare_at_price": f"{compare_at_price:.2f}" if compare_at_price is not None else None,
            }
        ).eq("id", variant_id).execute()
