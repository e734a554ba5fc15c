"""
Arrondi "psychologique" des prix proposés.

Un prix augmenté est arrondi à l'entier supérieur moins un centime
(21.20 -> 21.99), un prix baissé à l'entier inférieur plus 0.99
(28.50 -> 28.99), en restant dans les bornes [min_price, max_price].
"""

import math
from typing import Optional

from .config import ExperimentConfig, clamp, get_default_experiment_config


def round_to_two(value: float) -> float:
    """Arrondi à deux décimales, demi-unité vers +inf (comme l'affichage storefront)."""
    return math.floor(value * 100 + 0.5) / 100


def psychological_price(
    base_price: float,
    delta_percent: float,
    config: Optional[ExperimentConfig] = None,
) -> float:
    """
    Convertit `base_price` modifié de `delta_percent` en prix terminé par .99.

    Le sens de l'arrondi suit le signe du delta, de sorte qu'une hausse ne
    produit jamais un prix inférieur au prix de base, et inversement.
    """
    if delta_percent == 0:
        return round_to_two(base_price)

    config = config or get_default_experiment_config()
    raw = base_price * (1 + delta_percent / 100)
    clamped = clamp(raw, config.min_price, config.max_price)

    if delta_percent > 0:
        rounded = round_to_two(max(config.min_price, math.ceil(clamped) - 0.01))
        # Au-delà de max_price la borne ferait baisser le prix
        return max(rounded, round_to_two(base_price))

    floor = math.floor(clamped)
    if floor <= config.min_price:
        rounded = round_to_two(max(config.min_price, clamped))
    else:
        rounded = round_to_two(floor + 0.99)
    return min(rounded, round_to_two(base_price))


def effective_delta_percent(base_price: float, proposed_price: float) -> float:
    """Delta réellement appliqué après arrondi, en pourcentage du prix de base."""
    if base_price <= 0:
        return 0.0
    return round_to_two((proposed_price - base_price) / base_price * 100)
