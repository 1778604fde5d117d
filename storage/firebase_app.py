from __future__ import annotations

import logging

import firebase_admin

from config.settings import settings

log = logging.getLogger("drk.firebase")


def get_firebase_app() -> firebase_admin.App:
    """Return the default firebase_admin app, initialising it on first use (ADC credentials)."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
    app = firebase_admin.initialize_app(options=options)
    log.info("firebase_app_initialized", extra={"extra": {"project_id": settings.FIREBASE_PROJECT_ID or "adc"}})
    return app
