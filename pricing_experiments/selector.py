"""
Sélection des variantes candidates à une expérience de prix.

Soit l'appelant fournit explicitement des variantes, soit on prend les
meilleures ventes des 30 derniers jours (repli : variantes les plus récentes).
On sur-échantillonne (3 x max_variants) car une partie des candidats sera
écartée par la politique de delta ou par l'arrondi.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import pytz

from .config import ExperimentConfig, get_default_experiment_config
from .interfaces.data_access import VariantStore
from .metrics import aggregate_by_variant, rank_variants_by_revenue
from .models import CandidateVariant

logger = logging.getLogger(__name__)


def _dedupe(variant_ids: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(v for v in variant_ids if v))


def select_candidates(
    store: VariantStore,
    max_variants: int,
    variant_ids: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
    config: Optional[ExperimentConfig] = None,
) -> List[CandidateVariant]:
    """
    Retourne au plus `3 x max_variants` candidats éligibles, sans doublon.

    Les candidats dont le prix courant n'est pas strictement positif sont
    écartés. L'ordre du résultat n'est pas garanti.
    """
    config = config or get_default_experiment_config()
    now = now or datetime.now(pytz.UTC)
    fetch_limit = max_variants * config.candidate_overfetch_factor
    since = now - timedelta(days=config.trailing_window_days)

    requested = _dedupe(variant_ids or [])
    if requested:
        candidate_ids = requested[:fetch_limit]
    else:
        lines = store.list_order_lines(since=since, sellable_only=True)
        candidate_ids = rank_variants_by_revenue(lines, fetch_limit)

        if not candidate_ids:
            logger.info("No recent sales for candidate ranking, falling back to newest sellable variants")
            candidate_ids = _dedupe(store.list_recent_sellable_variant_ids(fetch_limit))[:fetch_limit]

    if not candidate_ids:
        return []

    rows = store.get_sellable_variants(candidate_ids, fetch_limit)
    if not rows:
        return []

    performance = aggregate_by_variant(
        store.list_order_lines(since=since, variant_ids=[r["variant_id"] for r in rows])
    )

    candidates: List[CandidateVariant] = []
    seen = set()
    for row in rows:
        variant_id = row["variant_id"]
        if not variant_id or variant_id in seen:
            continue
        seen.add(variant_id)

        perf = performance.get(variant_id, {"units": 0, "revenue": 0.0, "order_count": 0})
        candidate = CandidateVariant(
            variant_id=variant_id,
            product_id=row["product_id"],
            product_name=row["product_name"],
            variant_title=row["variant_title"],
            current_price=float(row["price"] or 0),
            current_compare_at_price=row["compare_at_price"],
            inventory_quantity=int(row["inventory_quantity"] or 0),
            reserved_quantity=int(row["reserved_quantity"] or 0),
            units_30d=perf["units"],
            revenue_30d=perf["revenue"],
            order_count_30d=perf["order_count"],
        )
        if candidate.current_price <= 0:
            logger.debug(f"Dropping candidate {variant_id}: non-positive price")
            continue
        candidates.append(candidate)

    return candidates[:fetch_limit]
