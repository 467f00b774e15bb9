from __future__ import annotations

from typing import Any, Dict

from google.cloud import firestore

from config.settings import settings


def get_firestore_client() -> firestore.AsyncClient:
    """
    Async client shared by all repositories of one process.

    Empty FIRESTORE_PROJECT_ID falls back to the ADC default project, empty
    FIRESTORE_DATABASE to the "(default)" database.
    """
    kwargs: Dict[str, Any] = {}
    if settings.FIRESTORE_PROJECT_ID:
        kwargs["project"] = settings.FIRESTORE_PROJECT_ID
    if settings.FIRESTORE_DATABASE:
        kwargs["database"] = settings.FIRESTORE_DATABASE
    return firestore.AsyncClient(**kwargs)
