"""
Moteur d'expérimentation de prix ("agentic pricing experiments").

Ce package contient :
- la configuration (garde-fous, fenêtres d'analyse, connexion Supabase),
- la sélection des variantes candidates et la politique de delta,
- l'arrondi psychologique des prix proposés,
- l'application / restauration des prix,
- la reconstruction des expériences depuis le journal d'événements,
- l'analyse de performance avant/après.
"""

from .config import ExperimentConfig, Guardrails, Settings
from .errors import NotFoundError, PricingExperimentError, ValidationError
from .service import PricingExperimentService

__all__ = [
    "ExperimentConfig",
    "Guardrails",
    "NotFoundError",
    "PricingExperimentError",
    "PricingExperimentService",
    "Settings",
    "ValidationError",
]
