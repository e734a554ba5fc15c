"""
Reconstruction des expériences depuis le journal d'événements.

Il n'existe pas de table d'expériences : une expérience est définie par son
premier événement `pricing_experiment_started` rencontré dans le scan, et
son statut par la présence d'un `pricing_experiment_stopped` portant le même
identifiant. Le journal est lu du plus récent au plus ancien ; pour chaque
identifiant, le premier enregistrement rencontré de chaque type fait foi.
"""

import logging
from typing import Dict, List, Optional

from .config import ExperimentConfig, Guardrails, clamp, get_default_experiment_config
from .errors import NotFoundError
from .interfaces.event_log import EXPERIMENT_STARTED, EXPERIMENT_STOPPED, EventLog, EventRecord
from .models import (
    DEFAULT_EXPERIMENT_NAME,
    Experiment,
    ExperimentSummary,
    as_number,
    as_string,
    assignments_from_payload,
    isoformat,
)
from .rounding import round_to_two

logger = logging.getLogger(__name__)

LIFECYCLE_EVENT_TYPES = [EXPERIMENT_STARTED, EXPERIMENT_STOPPED]


def _record_timestamp(record: EventRecord, key: str) -> Optional[str]:
    """Timestamp du payload, sinon date de création de l'enregistrement, sinon None."""
    value = as_string(record.properties.get(key))
    if value:
        return value
    return isoformat(record.created_at)


class ExperimentLifecycle:
    """
    Lecture seule : `list` et `get` n'écrivent jamais et renvoient le même
    résultat tant qu'aucun événement n'est ajouté au journal.
    """

    def __init__(self, event_log: EventLog, config: Optional[ExperimentConfig] = None):
        self.event_log = event_log
        self.config = config or get_default_experiment_config()

    def list(self, limit: Optional[int] = None) -> List[ExperimentSummary]:
        limit = self.config.list_default_limit if limit is None else limit
        normalized_limit = int(clamp(int(limit), *self.config.list_limit_bounds))
        records = self.event_log.list_recent_by_types(
            LIFECYCLE_EVENT_TYPES,
            normalized_limit * self.config.list_scan_factor,
        )

        stopped_at_by_id: Dict[str, Optional[str]] = {}
        for record in records:
            if record.event_type != EXPERIMENT_STOPPED:
                continue
            experiment_id = as_string(record.properties.get("experimentId"))
            if not experiment_id or experiment_id in stopped_at_by_id:
                continue
            stopped_at_by_id[experiment_id] = _record_timestamp(record, "stoppedAt")

        summaries: List[ExperimentSummary] = []
        seen = set()
        for record in records:
            if record.event_type != EXPERIMENT_STARTED:
                continue
            experiment_id = as_string(record.properties.get("experimentId"))
            if not experiment_id or experiment_id in seen:
                continue
            seen.add(experiment_id)

            assignments = assignments_from_payload(record.properties.get("assignments"))
            avg_delta = (
                round_to_two(sum(a.delta_percent for a in assignments) / len(assignments))
                if assignments
                else 0.0
            )
            stopped = experiment_id in stopped_at_by_id

            summaries.append(
                ExperimentSummary(
                    experiment_id=experiment_id,
                    name=as_string(record.properties.get("name")) or DEFAULT_EXPERIMENT_NAME,
                    status="stopped" if stopped else "running",
                    started_at=_record_timestamp(record, "startedAt"),
                    stopped_at=stopped_at_by_id.get(experiment_id),
                    assignments_count=len(assignments),
                    avg_delta_percent=avg_delta,
                )
            )
            if len(summaries) >= normalized_limit:
                break

        return summaries

    def get(self, experiment_id: str) -> Experiment:
        """
        Reconstruit une expérience. Un "stopped" sans "started" correspondant
        n'est pas une expérience valide : NotFoundError.
        """
        records = self.event_log.list_recent_by_types(
            LIFECYCLE_EVENT_TYPES,
            self.config.get_scan_limit,
        )

        start_record: Optional[EventRecord] = None
        stop_record: Optional[EventRecord] = None

        for record in records:
            if as_string(record.properties.get("experimentId")) != experiment_id:
                continue

            if record.event_type == EXPERIMENT_STOPPED and stop_record is None:
                stop_record = record
            if record.event_type == EXPERIMENT_STARTED and start_record is None:
                start_record = record

            if start_record is not None and stop_record is not None:
                break

        if start_record is None:
            raise NotFoundError("Pricing experiment", experiment_id)

        properties = start_record.properties
        auto_apply = properties.get("autoApply")
        applied_count = as_number(properties.get("appliedCount"))

        return Experiment(
            experiment_id=experiment_id,
            name=as_string(properties.get("name")) or DEFAULT_EXPERIMENT_NAME,
            status="stopped" if stop_record is not None else "running",
            started_at=_record_timestamp(start_record, "startedAt"),
            stopped_at=_record_timestamp(stop_record, "stoppedAt") if stop_record is not None else None,
            assignments=assignments_from_payload(properties.get("assignments")),
            guardrails=Guardrails.from_payload(properties.get("guardrails"), self.config),
            auto_apply=auto_apply if isinstance(auto_apply, bool) else True,
            applied_count=int(applied_count) if applied_count is not None else 0,
        )
