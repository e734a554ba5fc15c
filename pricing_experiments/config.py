"""
Configuration centrale pour le moteur d'expérimentation de prix.

Ce module définit :
- les paramètres d'environnement (Supabase, boutique, feature flags, logging),
- les constantes du moteur (bornes des garde-fous, fenêtres d'analyse,
  limites de scan du journal d'événements),
- les garde-fous (`Guardrails`) fournis à chaque appel propose/start.

Les valeurs par défaut reprennent celles du storefront ; elles peuvent être
surchargées par environnement via `Settings.from_env()`.
"""

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

from .errors import ValidationError

# Charger .env depuis la racine du projet
project_root = Path(__file__).parent.parent
load_dotenv(dotenv_path=project_root / ".env")


@dataclass
class Settings:
    """Configuration d'exécution (connexion Supabase, boutique, flags)."""

    supabase_url: str
    supabase_key: str

    # Boutique (tenant) sur laquelle opère le moteur
    store_id: str = ""

    # Liste CSV des feature flags activés
    feature_flags: str = ""

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Crée une instance Settings depuis les variables d'environnement."""
        return cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", os.getenv("SUPABASE_KEY", "")),
            store_id=os.getenv("STORE_ID", ""),
            feature_flags=os.getenv("FEATURE_FLAGS", ""),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class ExperimentConfig:
    """
    Constantes du moteur d'expérimentation.

    Les bornes absolues des garde-fous sont celles acceptées par l'API
    d'administration ; les valeurs par défaut s'appliquent quand l'appelant
    ne fournit rien.
    """

    default_min_delta_percent: float = -10.0
    default_max_delta_percent: float = 10.0
    default_max_variants: int = 8

    min_delta_bounds: Tuple[float, float] = (-20.0, 0.0)
    max_delta_bounds: Tuple[float, float] = (0.0, 20.0)
    max_variants_bounds: Tuple[int, int] = (1, 30)

    # Sur-échantillonnage des candidats pour survivre au filtrage aval
    candidate_overfetch_factor: int = 3

    # Fenêtre glissante de performance des variantes (jours)
    trailing_window_days: int = 30

    # Bornes du prix psychologique
    min_price: float = 1.0
    max_price: float = 10000.0

    # Reconstruction depuis le journal d'événements
    list_default_limit: int = 20
    list_limit_bounds: Tuple[int, int] = (1, 100)
    list_scan_factor: int = 20
    get_scan_limit: int = 2000

    # Analyse de performance
    default_window_days: int = 14
    window_days_bounds: Tuple[int, int] = (3, 60)

    # Statuts de commande pris en compte dans les agrégats
    non_cancelled_order_statuses: Tuple[str, ...] = field(
        default=("pending", "processing", "shipped", "delivered", "refunded")
    )


def get_default_experiment_config() -> ExperimentConfig:
    """Retourne une instance de configuration par défaut."""
    return ExperimentConfig()


def clamp(value: float, lower: float, upper: float) -> float:
    return min(upper, max(lower, value))


def _as_number(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be a finite number")
    return number


@dataclass(frozen=True)
class Guardrails:
    """
    Garde-fous d'une proposition / d'une expérience.

    Jamais persistés seuls : fournis (ou pris par défaut) à chaque appel, puis
    recopiés dans l'événement "started" pour pouvoir être relus plus tard.
    """

    min_delta_percent: float
    max_delta_percent: float
    max_variants: int

    @classmethod
    def normalize(
        cls,
        max_variants: Optional[Any] = None,
        min_delta_percent: Optional[Any] = None,
        max_delta_percent: Optional[Any] = None,
        config: Optional[ExperimentConfig] = None,
    ) -> "Guardrails":
        """
        Construit des garde-fous valides à partir d'entrées optionnelles.

        Les valeurs absentes prennent les défauts de la configuration, les
        valeurs fournies sont ramenées dans leurs bornes absolues. Une borne
        minimale supérieure à la borne maximale est rejetée.
        """
        config = config or get_default_experiment_config()

        raw_max_variants = config.default_max_variants if max_variants is None else max_variants
        raw_min = config.default_min_delta_percent if min_delta_percent is None else min_delta_percent
        raw_max = config.default_max_delta_percent if max_delta_percent is None else max_delta_percent

        variants = int(clamp(int(_as_number(raw_max_variants, "maxVariants")), *config.max_variants_bounds))
        min_delta = clamp(_as_number(raw_min, "minDeltaPercent"), *config.min_delta_bounds)
        max_delta = clamp(_as_number(raw_max, "maxDeltaPercent"), *config.max_delta_bounds)

        if min_delta > max_delta:
            raise ValidationError("minDeltaPercent cannot be greater than maxDeltaPercent")

        return cls(
            min_delta_percent=min_delta,
            max_delta_percent=max_delta,
            max_variants=variants,
        )

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        config: Optional[ExperimentConfig] = None,
    ) -> "Guardrails":
        """Relit les garde-fous enregistrés dans un événement "started"."""
        data: Dict[str, Any] = payload if isinstance(payload, dict) else {}
        try:
            return cls.normalize(
                max_variants=data.get("maxVariants"),
                min_delta_percent=data.get("minDeltaPercent"),
                max_delta_percent=data.get("maxDeltaPercent"),
                config=config,
            )
        except ValidationError:
            # Payload corrompu : on retombe sur les défauts
            return cls.normalize(config=config)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minDeltaPercent": self.min_delta_percent,
            "maxDeltaPercent": self.max_delta_percent,
            "maxVariants": self.max_variants,
        }
