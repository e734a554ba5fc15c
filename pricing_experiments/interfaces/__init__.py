"""
Sous-package `interfaces` du moteur d'expérimentation de prix.

Responsabilités :
- isoler le moteur des systèmes externes (Supabase/PostgreSQL),
- exposer une interface étroite de lecture/écriture des variantes et commandes,
- exposer le journal d'événements (append + lecture des plus récents par type),
- faciliter le test (les deux interfaces sont remplaçables par des fakes).
"""

from .data_access import VariantStore, get_supabase_client
from .event_log import EventLog, EventRecord

__all__ = [
    "EventLog",
    "EventRecord",
    "VariantStore",
    "get_supabase_client",
]
