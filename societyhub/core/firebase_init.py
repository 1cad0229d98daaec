import json
import logging
import os
from typing import Optional, Tuple

import firebase_admin
from firebase_admin import credentials

from .config import settings

logger = logging.getLogger(__name__)

_firebase_initialized = False
_credential_source: Optional[str] = None
_last_error: Optional[str] = None


def _has_default_app() -> bool:
    try:
        firebase_admin.get_app()
        return True
    except ValueError:
        return False


def _load_credentials() -> Tuple[Optional[credentials.Certificate], str]:
    """
    Service account credentials for the society's Firebase project.
    Inline JSON (container deploys) wins over the key file on disk.
    Returns ``(None, reason)`` when neither is usable.
    """
    if settings.FIREBASE_CREDENTIALS_JSON:
        try:
            info = json.loads(settings.FIREBASE_CREDENTIALS_JSON)
        except ValueError as e:
            return None, f"FIREBASE_CREDENTIALS_JSON is not valid JSON: {e}"
        return credentials.Certificate(info), "env"

    path = settings.FIREBASE_SERVICE_ACCOUNT_PATH
    if not os.path.exists(path):
        return None, f"service account file not found at {path}"
    return credentials.Certificate(path), path


def initialize_firebase() -> bool:
    """
    Initialize the default Firebase app once per process.
    Returns False (and the store falls back to memory) when no credentials are usable.
    """
    global _firebase_initialized, _credential_source, _last_error

    if _firebase_initialized or _has_default_app():
        return True

    try:
        cred, source = _load_credentials()
        if cred is None:
            _last_error = source
            logger.warning(f"⚠️ Firebase not configured: {source}")
            return False

        firebase_admin.initialize_app(cred, {'projectId': settings.FIREBASE_PROJECT_ID})
        _firebase_initialized = True
        _credential_source = source
        _last_error = None
        logger.info(f"✅ Firebase initialized for project {settings.FIREBASE_PROJECT_ID} ({source})")
        return True

    except Exception as e:
        _last_error = str(e)
        logger.error(f"❌ Firebase initialization failed: {e}")
        return False


def is_firebase_available() -> bool:
    return _firebase_initialized or _has_default_app()


def get_firebase_status() -> dict:
    """Reported by /health."""
    return {
        "available": is_firebase_available(),
        "project_id": settings.FIREBASE_PROJECT_ID,
        "credential_source": _credential_source,
        "error": _last_error,
    }
