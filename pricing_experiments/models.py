"""
Structures de données du moteur d'expérimentation de prix.

Les noms de champs Python sont en snake_case ; `to_dict()` produit la forme
camelCase utilisée dans les payloads du journal d'événements et dans les
réponses du serveur.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import Guardrails

logger = logging.getLogger(__name__)

DEFAULT_EXPERIMENT_NAME = "Pricing Experiment"
DEFAULT_RATIONALE = "No rationale provided."


def as_record(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def as_number(value: Any) -> Optional[float]:
    # bool est un int en Python, on l'exclut explicitement
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


@dataclass
class CandidateVariant:
    """Variante candidate, recalculée à chaque proposition (jamais persistée)."""

    variant_id: str
    product_id: str
    product_name: str
    variant_title: str
    current_price: float
    current_compare_at_price: Optional[float]
    inventory_quantity: int = 0
    reserved_quantity: int = 0
    units_30d: int = 0
    revenue_30d: float = 0.0
    order_count_30d: int = 0

    @property
    def available_inventory(self) -> int:
        return max(0, self.inventory_quantity - self.reserved_quantity)


@dataclass(frozen=True)
class Assignment:
    """Changement de prix d'une variante dans une proposition / expérience."""

    variant_id: str
    product_id: str
    product_name: str
    variant_title: str
    baseline_price: float
    baseline_compare_at_price: Optional[float]
    proposed_price: float
    delta_percent: float
    rationale: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variantId": self.variant_id,
            "productId": self.product_id,
            "productName": self.product_name,
            "variantTitle": self.variant_title,
            "baselinePrice": self.baseline_price,
            "baselineCompareAtPrice": self.baseline_compare_at_price,
            "proposedPrice": self.proposed_price,
            "deltaPercent": self.delta_percent,
            "rationale": self.rationale,
        }

    @classmethod
    def from_payload(cls, value: Any) -> Optional["Assignment"]:
        """Relit une assignation enregistrée ; None si l'entrée est inexploitable."""
        row = as_record(value)
        variant_id = as_string(row.get("variantId"))
        product_id = as_string(row.get("productId"))
        product_name = as_string(row.get("productName"))
        variant_title = as_string(row.get("variantTitle"))
        baseline_price = as_number(row.get("baselinePrice"))
        proposed_price = as_number(row.get("proposedPrice"))
        delta_percent = as_number(row.get("deltaPercent"))

        if not variant_id or not product_id or not product_name or not variant_title:
            return None
        if baseline_price is None or proposed_price is None or delta_percent is None:
            return None

        return cls(
            variant_id=variant_id,
            product_id=product_id,
            product_name=product_name,
            variant_title=variant_title,
            baseline_price=baseline_price,
            baseline_compare_at_price=as_number(row.get("baselineCompareAtPrice")),
            proposed_price=proposed_price,
            delta_percent=delta_percent,
            rationale=as_string(row.get("rationale")) or DEFAULT_RATIONALE,
        )


def assignments_from_payload(value: Any) -> List[Assignment]:
    if not isinstance(value, list):
        return []

    assignments: List[Assignment] = []
    for item in value:
        assignment = Assignment.from_payload(item)
        if assignment is None:
            logger.warning(f"Skipping malformed assignment in experiment payload: {item!r}")
            continue
        assignments.append(assignment)
    return assignments


@dataclass
class Proposal:
    assignments: List[Assignment]
    warnings: List[str]
    guardrails: Guardrails

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignments": [a.to_dict() for a in self.assignments],
            "warnings": list(self.warnings),
            "guardrails": self.guardrails.to_dict(),
        }


@dataclass
class ExperimentSummary:
    """Résumé d'une expérience pour le listing."""

    experiment_id: str
    name: str
    status: str
    started_at: Optional[str]
    stopped_at: Optional[str]
    assignments_count: int
    avg_delta_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experimentId": self.experiment_id,
            "name": self.name,
            "status": self.status,
            "startedAt": self.started_at,
            "stoppedAt": self.stopped_at,
            "assignmentsCount": self.assignments_count,
            "avgDeltaPercent": self.avg_delta_percent,
        }


@dataclass
class Experiment:
    """Expérience reconstruite depuis le journal (aucune table dédiée)."""

    experiment_id: str
    name: str
    status: str
    started_at: Optional[str]
    stopped_at: Optional[str]
    assignments: List[Assignment]
    guardrails: Guardrails
    auto_apply: bool = True
    applied_count: int = 0

    @property
    def is_stopped(self) -> bool:
        return self.status == "stopped"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experimentId": self.experiment_id,
            "name": self.name,
            "status": self.status,
            "startedAt": self.started_at,
            "stoppedAt": self.stopped_at,
            "autoApply": self.auto_apply,
            "appliedCount": self.applied_count,
            "guardrails": self.guardrails.to_dict(),
            "assignments": [a.to_dict() for a in self.assignments],
        }


@dataclass
class StartResult:
    experiment_id: str
    name: str
    started_at: str
    applied_count: int
    auto_apply: bool
    guardrails: Guardrails
    assignments: List[Assignment]
    status: str = "running"

    @property
    def assignments_count(self) -> int:
        return len(self.assignments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experimentId": self.experiment_id,
            "name": self.name,
            "status": self.status,
            "startedAt": self.started_at,
            "assignmentsCount": self.assignments_count,
            "appliedCount": self.applied_count,
            "autoApply": self.auto_apply,
            "guardrails": self.guardrails.to_dict(),
            "assignments": [a.to_dict() for a in self.assignments],
        }


@dataclass
class StopResult:
    experiment_id: str
    stopped_at: str
    restored_count: int
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "experimentId": self.experiment_id,
            "stoppedAt": self.stopped_at,
            "restoredCount": self.restored_count,
        }


@dataclass
class WindowMetrics:
    start: datetime
    end: datetime
    units: int = 0
    revenue: float = 0.0
    order_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": isoformat(self.start),
            "to": isoformat(self.end),
            "units": self.units,
            "revenue": self.revenue,
            "orderCount": self.order_count,
        }


@dataclass
class Lifts:
    """Lifts en pourcentage ; None signifie "non calculable", jamais 0."""

    units_percent: Optional[float]
    revenue_percent: Optional[float]
    order_count_percent: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unitsPercent": self.units_percent,
            "revenuePercent": self.revenue_percent,
            "orderCountPercent": self.order_count_percent,
        }


@dataclass
class Performance:
    experiment_id: str
    started_at: datetime
    stopped_at: Optional[str]
    window_days: int
    pre_window: WindowMetrics
    post_window: WindowMetrics
    lifts: Lifts = field(default_factory=lambda: Lifts(None, None, None))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experimentId": self.experiment_id,
            "startedAt": isoformat(self.started_at),
            "stoppedAt": self.stopped_at,
            "windowDays": self.window_days,
            "preWindow": self.pre_window.to_dict(),
            "postWindow": self.post_window.to_dict(),
            "lifts": self.lifts.to_dict(),
        }
