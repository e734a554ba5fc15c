"""
Orchestration des expériences de prix : propose, start, stop, listing,
détail et performance.

Flux :
- propose : sélection des candidats -> politique de delta -> arrondi
  psychologique -> proposition (aucune écriture de prix) ;
- start : nouvelle proposition, application des prix si `auto_apply`, puis
  événement "started" portant l'ensemble des assignations ;
- stop : reconstruction de l'expérience depuis le journal, restauration des
  prix de référence, puis événement "stopped".
"""

import logging
import random
import string
import time
from datetime import datetime
from typing import Any, List, Optional, Sequence

import pytz

from .config import ExperimentConfig, Guardrails, get_default_experiment_config
from .errors import ValidationError
from .interfaces.data_access import VariantStore
from .interfaces.event_log import (
    EXPERIMENT_STARTED,
    EXPERIMENT_STOPPED,
    PROPOSAL_GENERATED,
    EventLog,
)
from .lifecycle import ExperimentLifecycle
from .models import (
    Assignment,
    Experiment,
    ExperimentSummary,
    Performance,
    Proposal,
    StartResult,
    StopResult,
    isoformat,
)
from .mutations import PriceMutator
from .performance import PerformanceAnalyzer
from .policy import decide_delta
from .rounding import effective_delta_percent, psychological_price, round_to_two
from .selector import select_candidates

logger = logging.getLogger(__name__)

NO_QUALIFIED_VARIANTS_WARNING = (
    "No variants qualified for non-zero price changes within configured guardrails."
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_experiment_id() -> str:
    """Identifiant opaque : price-exp-<epoch ms>-<8 caractères base36>."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=8))
    return f"price-exp-{int(time.time() * 1000)}-{suffix}"


class PricingExperimentService:
    """
    Point d'entrée du moteur pour une boutique.

    Aucun état partagé entre appels : chaque opération relit le store et le
    journal. Les erreurs du store ne sont ni interceptées ni rejouées.
    """

    def __init__(
        self,
        store: VariantStore,
        event_log: EventLog,
        config: Optional[ExperimentConfig] = None,
        user_id: Optional[str] = None,
    ):
        self.store = store
        self.event_log = event_log
        self.config = config or get_default_experiment_config()
        self.user_id = user_id
        self.lifecycle = ExperimentLifecycle(event_log, self.config)
        self.mutator = PriceMutator(store)
        self.analyzer = PerformanceAnalyzer(store, self.lifecycle, self.config)

    def _now(self) -> datetime:
        return datetime.now(pytz.UTC)

    def build_proposal(
        self,
        max_variants: Optional[Any] = None,
        variant_ids: Optional[Sequence[str]] = None,
        min_delta_percent: Optional[Any] = None,
        max_delta_percent: Optional[Any] = None,
    ) -> Proposal:
        """Calcule une proposition sans l'enregistrer dans le journal."""
        guardrails = Guardrails.normalize(
            max_variants=max_variants,
            min_delta_percent=min_delta_percent,
            max_delta_percent=max_delta_percent,
            config=self.config,
        )

        candidates = select_candidates(
            self.store,
            guardrails.max_variants,
            variant_ids=variant_ids,
            now=self._now(),
            config=self.config,
        )
        if not candidates:
            raise ValidationError("No eligible variants found for pricing experiments")

        assignments: List[Assignment] = []
        warnings: List[str] = []

        for candidate in candidates:
            decision = decide_delta(candidate, guardrails)
            proposed_price = psychological_price(candidate.current_price, decision.delta_percent, self.config)
            effective_delta = effective_delta_percent(candidate.current_price, proposed_price)

            # Les changements nuls après arrondi ne sont pas des assignations
            if effective_delta == 0 or proposed_price <= 0:
                continue

            assignments.append(
                Assignment(
                    variant_id=candidate.variant_id,
                    product_id=candidate.product_id,
                    product_name=candidate.product_name,
                    variant_title=candidate.variant_title,
                    baseline_price=round_to_two(candidate.current_price),
                    baseline_compare_at_price=candidate.current_compare_at_price,
                    proposed_price=proposed_price,
                    delta_percent=effective_delta,
                    rationale=decision.rationale,
                )
            )
            if len(assignments) >= guardrails.max_variants:
                break

        if not assignments:
            logger.warning(
                f"No qualifying assignments among {len(candidates)} candidates for store {self.store.store_id}"
            )
            warnings.append(NO_QUALIFIED_VARIANTS_WARNING)

        return Proposal(assignments=assignments, warnings=warnings, guardrails=guardrails)

    def propose(
        self,
        max_variants: Optional[Any] = None,
        variant_ids: Optional[Sequence[str]] = None,
        min_delta_percent: Optional[Any] = None,
        max_delta_percent: Optional[Any] = None,
    ) -> Proposal:
        proposal = self.build_proposal(
            max_variants=max_variants,
            variant_ids=variant_ids,
            min_delta_percent=min_delta_percent,
            max_delta_percent=max_delta_percent,
        )
        self.event_log.append(
            PROPOSAL_GENERATED,
            {
                "assignmentCount": len(proposal.assignments),
                "maxVariants": proposal.guardrails.max_variants,
            },
            user_id=self.user_id,
        )
        return proposal

    def start(
        self,
        name: str,
        auto_apply: bool = True,
        experiment_id: Optional[str] = None,
        max_variants: Optional[Any] = None,
        variant_ids: Optional[Sequence[str]] = None,
        min_delta_percent: Optional[Any] = None,
        max_delta_percent: Optional[Any] = None,
    ) -> StartResult:
        """
        Démarre une expérience. L'unicité de `experiment_id` n'est pas
        vérifiée : deux démarrages concurrents avec le même identifiant
        produisent deux événements "started".
        """
        proposal = self.build_proposal(
            max_variants=max_variants,
            variant_ids=variant_ids,
            min_delta_percent=min_delta_percent,
            max_delta_percent=max_delta_percent,
        )
        if not proposal.assignments:
            raise ValidationError("No eligible assignments to start an experiment")

        experiment_id = experiment_id or generate_experiment_id()
        started_at = isoformat(self._now())

        applied_count = self.mutator.apply(proposal.assignments) if auto_apply else 0

        self.event_log.append(
            EXPERIMENT_STARTED,
            {
                "experimentId": experiment_id,
                "name": name,
                "startedAt": started_at,
                "autoApply": auto_apply,
                "appliedCount": applied_count,
                "guardrails": proposal.guardrails.to_dict(),
                "assignments": [a.to_dict() for a in proposal.assignments],
            },
            user_id=self.user_id,
        )
        logger.info(
            f"Started pricing experiment {experiment_id} with {len(proposal.assignments)} assignments "
            f"({applied_count} applied)"
        )

        return StartResult(
            experiment_id=experiment_id,
            name=name,
            started_at=started_at,
            applied_count=applied_count,
            auto_apply=auto_apply,
            guardrails=proposal.guardrails,
            assignments=proposal.assignments,
        )

    def stop(self, experiment_id: str) -> StopResult:
        experiment = self.lifecycle.get(experiment_id)
        if experiment.is_stopped:
            raise ValidationError("Experiment is already stopped")

        restored_count = self.mutator.restore(experiment.assignments)
        stopped_at = isoformat(self._now())

        self.event_log.append(
            EXPERIMENT_STOPPED,
            {
                "experimentId": experiment_id,
                "stoppedAt": stopped_at,
                "restoredCount": restored_count,
                "assignmentsCount": len(experiment.assignments),
            },
            user_id=self.user_id,
        )
        logger.info(f"Stopped pricing experiment {experiment_id}, restored {restored_count} variants")

        return StopResult(
            experiment_id=experiment_id,
            stopped_at=stopped_at,
            restored_count=restored_count,
        )

    def list_experiments(self, limit: Optional[int] = None) -> List[ExperimentSummary]:
        return self.lifecycle.list(limit)

    def get_experiment(self, experiment_id: str) -> Experiment:
        return self.lifecycle.get(experiment_id)

    def get_performance(self, experiment_id: str, window_days: Optional[int] = None) -> Performance:
        return self.analyzer.performance(experiment_id, window_days, now=self._now())
