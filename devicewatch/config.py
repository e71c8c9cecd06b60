import os
import json
import logging
import firebase_admin
from firebase_admin import credentials

from devicewatch.core.settings import settings

logger = logging.getLogger("devicewatch.config")


def init_firebase():
    """Initialize Firebase admin SDK.

    Behavior:
    - If FIREBASE_CERT_JSON env var is present, parse it as JSON and use it.
    - Else if FIREBASE_CERT_PATH points to an existing file, use that path.
    - Else, do nothing (avoid raising at import time; mock tokens still work).
    """
    if firebase_admin._apps:
        return

    fb_json = os.environ.get("FIREBASE_CERT_JSON")
    if fb_json:
        try:
            cred = credentials.Certificate(json.loads(fb_json))
            firebase_admin.initialize_app(cred)
            return
        except Exception as e:
            # Fall through to file-based loading which may still work
            logger.error(f"Failed to init Firebase from FIREBASE_CERT_JSON: {e}")

    fb_path = settings.firebase_cert_path
    if fb_path and os.path.exists(fb_path):
        try:
            firebase_admin.initialize_app(credentials.Certificate(fb_path))
            return
        except Exception as e:
            logger.error(f"Failed to init Firebase from path {fb_path}: {e}")

    logger.warning("No Firebase credentials found; skipping Firebase initialization.")
