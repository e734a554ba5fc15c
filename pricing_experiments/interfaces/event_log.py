"""
Journal d'événements append-only (table `analytics_events`).

Le moteur n'a pas de table d'expériences : l'état est relu ici à chaque appel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from dateutil import parser as date_parser
from supabase import Client  # type: ignore

from .data_access import response_data, fetch_all_pages

logger = logging.getLogger(__name__)

EXPERIMENT_STARTED = "pricing_experiment_started"
EXPERIMENT_STOPPED = "pricing_experiment_stopped"
PROPOSAL_GENERATED = "pricing_experiment_proposal_generated"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse un timestamp ISO 8601 ; None si absent ou illisible."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return None


@dataclass
class EventRecord:
    event_type: str
    properties: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


class EventLog:
    """
    Journal d'événements d'une boutique.

    - `append` insère un enregistrement typé avec un payload libre,
    - `list_recent_by_types` relit les N plus récents, du plus récent au plus ancien.
    """

    def __init__(self, client: Client, store_id: str):
        self.client = client
        self.store_id = store_id

    def append(
        self,
        event_type: str,
        properties: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> None:
        response = (
            self.client.table("analytics_events")
            .insert(
                {
                    "store_id": self.store_id,
                    "event_type": event_type,
                    "user_id": user_id,
                    "properties": properties,
                }
            )
            .execute()
        )
        response_data(response)
        logger.debug(f"Appended {event_type} event for store {self.store_id}")

    def list_recent_by_types(self, event_types: Sequence[str], limit: int) -> List[EventRecord]:
        if not event_types or limit <= 0:
            return []

        def build_query():
            return (
                self.client.table("analytics_events")
                .select("event_type, properties, created_at")
                .eq("store_id", self.store_id)
                .in_("event_type", list(event_types))
                .order("created_at", desc=True)
                .order("id", desc=True)
            )

        records: List[EventRecord] = []
        for row in fetch_all_pages(build_query, limit=limit):
            properties = row.get("properties")
            records.append(
                EventRecord(
                    event_type=row.get("event_type") or "",
                    properties=properties if isinstance(properties, dict) else {},
                    created_at=parse_timestamp(row.get("created_at")),
                )
            )
        return records
