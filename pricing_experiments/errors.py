"""
Erreurs métier du moteur d'expérimentation de prix.
"""

from typing import Optional


class PricingExperimentError(Exception):
    """Classe de base des erreurs du moteur."""


class ValidationError(PricingExperimentError, ValueError):
    """Entrée invalide ou opération impossible dans l'état courant."""


class NotFoundError(PricingExperimentError, LookupError):
    """Ressource introuvable (ex : expérience sans événement "started")."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found" if identifier is None else f"{resource} not found: {identifier}"
        super().__init__(message)


class FeatureDisabledError(PricingExperimentError):
    """Le flag `ai_pricing_experiments` n'est pas activé."""
