from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from google.cloud.firestore import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError

from models.records import EntityType, PrimaryRecord, parse_record
from models.schema import (
    COL_SALES,
    COL_SERVICES,
    SALE_ACTIVE_FIELD,
    SALE_ACTIVE_VALUE,
    SALE_EXPIRATION_FIELD,
    SERVICE_ACTIVE_FIELD,
    SERVICE_ACTIVE_VALUE,
    SERVICE_EXPIRATION_FIELD,
)
from storage.firestore_client import get_firestore_client

log = logging.getLogger("notifier.repos.source")


class SourceCollection(NamedTuple):
    collection: str
    active_field: str
    active_value: Any
    expiration_field: str


SOURCES: Dict[EntityType, SourceCollection] = {
    EntityType.SALE: SourceCollection(COL_SALES, SALE_ACTIVE_FIELD, SALE_ACTIVE_VALUE, SALE_EXPIRATION_FIELD),
    EntityType.SERVICE: SourceCollection(
        COL_SERVICES, SERVICE_ACTIVE_FIELD, SERVICE_ACTIVE_VALUE, SERVICE_EXPIRATION_FIELD
    ),
}


def parse_source_document(entity_type: EntityType, doc_id: str, data: Dict[str, Any]) -> PrimaryRecord:
    """
    Malformed documents still yield a record (with no expiration date) so they stay
    in the working set and get skipped downstream instead of aborting the query.
    """
    try:
        return parse_record(entity_type, doc_id, data)
    except ValidationError as e:
        log.warning(
            "source_record_invalid",
            extra={"extra": {"entity_type": entity_type.value, "source_id": doc_id, "errors": e.error_count()}},
        )
        return parse_record(entity_type, doc_id, {})


class SourceRepository:
    """Read-only access to the dashboard's sales and service documents."""

    def __init__(self, db: Optional[AsyncClient] = None):
        self.db = db or get_firestore_client()

    async def query_active_expiring(self, entity_type: EntityType, horizon_end: datetime) -> List[PrimaryRecord]:
        """Active records whose expiration falls before `horizon_end` (overdue ones included)."""
        src = SOURCES[entity_type]
        query = (
            self.db.collection(src.collection)
            .where(filter=FieldFilter(src.active_field, "==", src.active_value))
            .where(filter=FieldFilter(src.expiration_field, "<", horizon_end))
        )
        out: List[PrimaryRecord] = []
        async for snap in query.stream():
            out.append(parse_source_document(entity_type, snap.id, snap.to_dict() or {}))
        return out
