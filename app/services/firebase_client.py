"""
Firebase initialization and helpers
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any
import base64
import os

import firebase_admin
from firebase_admin import credentials, firestore


def load_credentials_info(raw: str) -> dict[str, Any]:
    """Read service account info from inline JSON, a file path, or base64 JSON."""
    raw = raw.strip()
    if raw.startswith("{"):
        return json.loads(raw)
    if os.path.exists(raw):
        with open(raw, "r", encoding="utf-8") as f:
            return json.load(f)
    decoded = base64.b64decode(raw).decode("utf-8")
    return json.loads(decoded)


@lru_cache(maxsize=1)
def get_firestore_client(project_id: str, raw_credentials: str):
    """Initialize and return a cached Firestore client for the given project."""
    if not project_id or not raw_credentials:
        raise RuntimeError("Firebase is not configured. Set FIREBASE_PROJECT_ID and FIREBASE_CREDENTIALS")

    if not firebase_admin._apps:
        info = load_credentials_info(raw_credentials)
        cred = credentials.Certificate(info)
        firebase_admin.initialize_app(cred, {"projectId": project_id})

    return firestore.client()
