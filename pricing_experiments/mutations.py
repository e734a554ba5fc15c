"""
Application et restauration des prix d'une expérience.

Une écriture par variante, séquentielle, sans transaction : en cas d'échec
en cours de boucle, les variantes déjà écrites le restent et l'erreur
remonte. Le compteur retourné est la seule source de vérité sur ce qui a
effectivement changé.
"""

import logging
from typing import List, Optional

from .interfaces.data_access import VariantStore
from .models import Assignment

logger = logging.getLogger(__name__)


class PriceMutator:
    """Écrit les prix proposés, ou remet les prix de référence (baseline)."""

    def __init__(self, store: VariantStore):
        self.store = store

    def apply(self, assignments: List[Assignment]) -> int:
        """
        Applique les prix proposés. Une baisse affiche l'ancien prix en
        compare-at ; une hausse conserve le compare-at d'origine (ou l'efface).
        """
        if not assignments:
            return 0

        eligible = self.store.get_variant_ids_in_scope(a.variant_id for a in assignments)
        updated = 0

        for assignment in assignments:
            if assignment.variant_id not in eligible:
                logger.debug(f"Skipping out-of-scope variant {assignment.variant_id} on apply")
                continue

            next_compare_at: Optional[float]
            if assignment.proposed_price < assignment.baseline_price:
                next_compare_at = assignment.baseline_price
            else:
                next_compare_at = assignment.baseline_compare_at_price

            self.store.update_variant_price(
                assignment.variant_id,
                assignment.proposed_price,
                next_compare_at,
            )
            updated += 1

        logger.info(f"Applied experiment prices to {updated}/{len(assignments)} variants")
        return updated

    def restore(self, assignments: List[Assignment]) -> int:
        """Remet inconditionnellement prix et compare-at aux valeurs de référence."""
        if not assignments:
            return 0

        eligible = self.store.get_variant_ids_in_scope(a.variant_id for a in assignments)
        updated = 0

        for assignment in assignments:
            if assignment.variant_id not in eligible:
                logger.debug(f"Skipping out-of-scope variant {assignment.variant_id} on restore")
                continue

            self.store.update_variant_price(
                assignment.variant_id,
                assignment.baseline_price,
                assignment.baseline_compare_at_price,
            )
            updated += 1

        logger.info(f"Restored baseline prices on {updated}/{len(assignments)} variants")
        return updated
