"""
Generation tracking service.
Logs AI generation events, raises admin alerts on repeated failures,
and increments the aiGeneration usage counter only on success.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.plans import AI_GENERATION
from infrastructure.database.models.generation import AdminAlert, GenerationLog
from services import usage_limits

logger = logging.getLogger(__name__)

# A user failing this many generations inside the window triggers an alert
FAILURE_ALERT_THRESHOLD = 3
FAILURE_ALERT_WINDOW = timedelta(hours=1)


class GenerationTracker:
    """Tracks generation events and records AI usage."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_start(
        self,
        user_id: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        input_metadata: Optional[dict] = None,
    ) -> GenerationLog:
        """Log the start of a generation. Returns the log entry for later update."""
        log = GenerationLog(
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            status="started",
            input_metadata=input_metadata,
        )
        self.db.add(log)
        await self.db.flush()
        return log

    async def _get(self, log_id: str) -> Optional[GenerationLog]:
        result = await self.db.execute(select(GenerationLog).where(GenerationLog.id == log_id))
        log = result.scalar_one_or_none()
        if not log:
            logger.warning("Generation log %s not found", log_id)
        return log

    async def log_success(
        self,
        log_id: str,
        ai_model: Optional[str] = None,
        duration_ms: Optional[int] = None,
        fallback: bool = False,
    ) -> None:
        """
        Mark a generation as finished.

        ``fallback`` records that deterministic content was served instead of
        model output; fallbacks are not billed.
        """
        log = await self._get(log_id)
        if not log:
            return

        log.status = "fallback" if fallback else "success"
        log.ai_model = ai_model
        log.duration_ms = duration_ms

        if not fallback:
            await usage_limits.increment_usage(self.db, log.user_id, AI_GENERATION)
        await self.db.flush()

    async def log_failure(
        self,
        log_id: str,
        error_message: str,
        duration_ms: Optional[int] = None,
    ) -> None:
        """Mark generation as failed. Does NOT increment usage."""
        log = await self._get(log_id)
        if not log:
            return

        log.status = "failed"
        log.error_message = error_message[:2000] if error_message else None
        log.duration_ms = duration_ms
        await self.db.flush()

        await self._maybe_alert(log, error_message)

    async def _maybe_alert(self, log: GenerationLog, error_message: str) -> Optional[AdminAlert]:
        since = datetime.now(timezone.utc) - FAILURE_ALERT_WINDOW
        result = await self.db.execute(
            select(func.count(GenerationLog.id)).where(
                GenerationLog.user_id == log.user_id,
                GenerationLog.status == "failed",
                GenerationLog.created_at >= since,
            )
        )
        failures = result.scalar_one()
        if failures != FAILURE_ALERT_THRESHOLD:
            return None

        alert = AdminAlert(
            alert_type="generation_failed",
            severity="warning",
            title=f"Repeated {log.resource_type} generation failures",
            message=(
                f"User {log.user_id} had {failures} failed generations in the last hour. "
                f"Latest error: {error_message[:500] if error_message else 'Unknown error'}"
            ),
            resource_type=log.resource_type,
            resource_id=log.resource_id,
            user_id=log.user_id,
        )
        self.db.add(alert)
        await self.db.flush()
        logger.warning("Generation failure alert raised for user %s", log.user_id)
        return alert
