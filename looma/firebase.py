"""Firestore client bootstrap for Looma."""

import logging
import os
from typing import Optional

import firebase_admin
import streamlit as st
from firebase_admin import credentials, firestore

_LOG = logging.getLogger(__name__)

_db_client: Optional[firestore.Client] = None
db: Optional[firestore.Client] = None  # overridable in tests

QUIZZES_COL = "quizzes"
SUBMISSIONS_COL = "submissions"


def _load_credentials() -> credentials.Base:
    """Return service account credentials.

    ``st.secrets["firebase"]`` wins when present; otherwise the JSON file
    named by ``GOOGLE_APPLICATION_CREDENTIALS`` is used.
    """

    try:
        cred_dict = dict(st.secrets["firebase"])
    except Exception:  # pragma: no cover - no secrets.toml outside streamlit
        cred_dict = None
    if cred_dict:
        return credentials.Certificate(cred_dict)

    path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "").strip()
    if path:
        return credentials.Certificate(path)
    return credentials.ApplicationDefault()


def get_db() -> firestore.Client:
    """Return a cached Firestore client."""

    global _db_client, db
    if db is not None:
        return db
    if _db_client is not None:
        db = _db_client
        return _db_client
    try:  # pragma: no cover - runtime side effects
        if not firebase_admin._apps:  # guard against re-init
            firebase_admin.initialize_app(_load_credentials())
        _db_client = firestore.client()
        db = _db_client
        return _db_client
    except Exception as e:  # pragma: no cover - depends on deployment
        _LOG.error("Firebase init failed: %s", e)
        raise RuntimeError("Firebase initialization failed") from e


__all__ = ["get_db", "QUIZZES_COL", "SUBMISSIONS_COL"]
