"""
Comparaison avant/après du démarrage d'une expérience.

Fenêtre "post" : [début, arrêt ou maintenant) ; fenêtre "pré" :
[début - window_days, début). Les lifts sont en pourcentage et valent None
quand la valeur de la fenêtre pré est nulle : un lift sur une base nulle
n'est pas défini.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import numpy as np
import pytz

from .config import ExperimentConfig, clamp, get_default_experiment_config
from .errors import ValidationError
from .interfaces.data_access import VariantStore
from .interfaces.event_log import parse_timestamp
from .lifecycle import ExperimentLifecycle
from .metrics import aggregate_totals
from .models import Lifts, Performance, WindowMetrics
from .rounding import round_to_two

logger = logging.getLogger(__name__)


def percent_lift(post: float, pre: float) -> Optional[float]:
    if not np.isfinite(pre) or pre <= 0:
        return None
    return round_to_two((post - pre) / pre * 100)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


class PerformanceAnalyzer:
    def __init__(
        self,
        store: VariantStore,
        lifecycle: ExperimentLifecycle,
        config: Optional[ExperimentConfig] = None,
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.config = config or get_default_experiment_config()

    def aggregate_window(self, variant_ids: List[str], start: datetime, end: datetime) -> WindowMetrics:
        if not variant_ids or end <= start:
            return WindowMetrics(start=start, end=end)

        totals = aggregate_totals(
            self.store.list_order_lines(since=start, until=end, variant_ids=variant_ids)
        )
        return WindowMetrics(
            start=start,
            end=end,
            units=totals["units"],
            revenue=totals["revenue"],
            order_count=totals["order_count"],
        )

    def performance(
        self,
        experiment_id: str,
        window_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Performance:
        window_days = self.config.default_window_days if window_days is None else window_days
        normalized_window = int(clamp(int(window_days), *self.config.window_days_bounds))

        experiment = self.lifecycle.get(experiment_id)

        started_at = parse_timestamp(experiment.started_at)
        if started_at is None:
            raise ValidationError("Experiment start timestamp is invalid")
        started_at = _as_utc(started_at)

        stopped_at = parse_timestamp(experiment.stopped_at)
        end_at = _as_utc(stopped_at) if stopped_at is not None else _as_utc(now or datetime.now(pytz.UTC))
        pre_from = started_at - timedelta(days=normalized_window)

        variant_ids = list(dict.fromkeys(a.variant_id for a in experiment.assignments))
        pre = self.aggregate_window(variant_ids, pre_from, started_at)
        post = self.aggregate_window(variant_ids, started_at, end_at)

        logger.info(
            f"Computed performance for {experiment_id}: pre revenue={pre.revenue:.2f}, "
            f"post revenue={post.revenue:.2f} over {len(variant_ids)} variants"
        )

        return Performance(
            experiment_id=experiment_id,
            started_at=started_at,
            stopped_at=experiment.stopped_at,
            window_days=normalized_window,
            pre_window=pre,
            post_window=post,
            lifts=Lifts(
                units_percent=percent_lift(post.units, pre.units),
                revenue_percent=percent_lift(post.revenue, pre.revenue),
                order_count_percent=percent_lift(post.order_count, pre.order_count),
            ),
        )
