"""
Résolution des feature flags (liste CSV de flags activés, ex. `FEATURE_FLAGS`).
"""

from typing import Dict, Optional

AI_PRICING_EXPERIMENTS = "ai_pricing_experiments"

KNOWN_FLAGS = (
    AI_PRICING_EXPERIMENTS,
)


def parse_csv_flags(enabled_csv: Optional[str]) -> set:
    if not enabled_csv:
        return set()
    return {item.strip().lower() for item in enabled_csv.split(",") if item.strip()}


def resolve_feature_flags(enabled_csv: Optional[str]) -> Dict[str, bool]:
    """Flag connu -> activé ? Les flags inconnus de la liste sont ignorés."""
    enabled = parse_csv_flags(enabled_csv)
    return {key: key in enabled for key in KNOWN_FLAGS}


def is_feature_enabled(enabled_csv: Optional[str], key: str) -> bool:
    return resolve_feature_flags(enabled_csv).get(key, False)
