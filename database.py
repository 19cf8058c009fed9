"""
Storage selection.

Chosen once at startup: a hosted Supabase project when both its URL and
service key are configured and a client can be built, the local SQLite file
otherwise. The returned repository lives for the whole process.
"""

import logging
from datetime import date
from typing import Callable, Optional

from supabase import create_client

from config import Settings
from hosted_repo import HostedRepo
from local_repo import LocalRepo
from persistence import BaseRepo

logger = logging.getLogger(__name__)


def open_repository(settings: Settings, today: Optional[Callable[[], date]] = None) -> BaseRepo:
    logger.debug("SUPABASE_URL length = %d", len(settings.supabase_url))
    logger.debug("SUPABASE_SERVICE_ROLE_KEY length = %d", len(settings.supabase_key))

    if settings.hosted_configured:
        try:
            client = create_client(settings.supabase_url, settings.supabase_key)
        except Exception:
            logger.warning("Failed to init Supabase client, falling back to SQLite", exc_info=True)
        else:
            logger.info("Supabase config detected, running in supabase mode")
            return HostedRepo(client, today=today)
    else:
        logger.warning("Supabase not configured, falling back to SQLite")

    repo = LocalRepo(settings.sqlite_path, today=today)
    logger.info("DB mode: %s", repo.mode)
    return repo
