"""
Politique heuristique de delta de prix.

Associe à un candidat (ventes 30 jours + stock disponible) un delta en
pourcentage, puis le borne par les garde-fous de l'appel. Première règle
qui s'applique gagne ; par défaut on ne touche pas au prix.
"""

from dataclasses import dataclass

from .config import Guardrails, clamp
from .models import CandidateVariant

HOLD_RATIONALE = "Stable demand profile; keep current price."

# Protection des petits prix contre les baisses fortes, et des prix premium
# contre les hausses fortes
CHEAP_PRICE_THRESHOLD = 5.0
CHEAP_MAX_MARKDOWN = -2.0
PREMIUM_PRICE_THRESHOLD = 200.0
PREMIUM_MAX_MARKUP = 4.0


@dataclass(frozen=True)
class PolicyDecision:
    delta_percent: float
    rationale: str


def _raw_decision(candidate: CandidateVariant) -> PolicyDecision:
    available = candidate.available_inventory
    units = candidate.units_30d

    if available == 0:
        return PolicyDecision(0.0, "No available inventory; skip price changes to avoid demand distortion.")
    if units >= 40 and available <= 8:
        return PolicyDecision(6.0, "High velocity with constrained inventory; test premium uplift.")
    if units >= 25:
        return PolicyDecision(3.0, "Strong recent demand; test moderate upward price movement.")
    if units <= 3 and available >= 20:
        return PolicyDecision(-7.0, "Low sell-through with high inventory; test stronger price reduction.")
    if units <= 8 and available >= 12:
        return PolicyDecision(-4.0, "Soft demand and available inventory; test light markdown.")
    if candidate.revenue_30d == 0 and available >= 5:
        return PolicyDecision(-5.0, "No recent revenue; test demand activation discount.")
    return PolicyDecision(0.0, HOLD_RATIONALE)


def decide_delta(candidate: CandidateVariant, guardrails: Guardrails) -> PolicyDecision:
    """
    Delta signé (en %) pour un candidat, toujours dans
    [guardrails.min_delta_percent, guardrails.max_delta_percent].
    """
    decision = _raw_decision(candidate)
    delta = decision.delta_percent

    if candidate.current_price <= CHEAP_PRICE_THRESHOLD and delta < 0:
        delta = max(delta, CHEAP_MAX_MARKDOWN)
    if candidate.current_price >= PREMIUM_PRICE_THRESHOLD and delta > 0:
        delta = min(delta, PREMIUM_MAX_MARKUP)

    delta = clamp(delta, guardrails.min_delta_percent, guardrails.max_delta_percent)
    return PolicyDecision(delta, decision.rationale)
