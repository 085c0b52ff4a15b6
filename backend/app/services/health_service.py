"""
Health service.
Reports database reachability and which integrations are configured.
"""

import time
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.services.base_service import BaseService
from app.schemas.health import HealthResponse
from app.db import session as db_session
from app.db.repositories.health_repository import HealthRepository


class HealthService(BaseService):
    """Service for health check operations."""

    def __init__(self):
        self.start_time = time.time()

    @staticmethod
    def integration_status() -> dict:
        """Which external integrations have credentials. Missing ones answer 503."""
        return {
            "payments": bool(settings.STRIPE_SECRET_KEY),
            "webhooks": bool(settings.STRIPE_WEBHOOK_SECRET),
            "email": bool(settings.SMTP_HOST),
            "bank_link": bool(settings.PLAID_CLIENT_ID and settings.PLAID_SECRET),
        }

    async def get_health(self) -> HealthResponse:
        """
        Get system health status.

        Only the database decides the overall status; an unconfigured
        integration is reported but does not degrade it.
        """
        uptime_seconds = int(time.time() - self.start_time)
        uptime_str = f"PT{uptime_seconds}S"  # ISO 8601 duration format

        checks = {}

        try:
            if db_session.async_session_maker is None:
                db_session.create_sessionmaker()
            async with db_session.async_session_maker() as session:
                repo = HealthRepository(session=session)
                db_status = await repo.check_database()
                checks["database"] = "ok" if db_status else "error"
        except (SQLAlchemyError, OSError) as e:
            checks["database"] = f"error: {str(e)}"

        status = "ok" if all(check == "ok" for check in checks.values()) else "degraded"

        return HealthResponse(
            status=status,
            version=settings.VERSION,
            uptime=uptime_str,
            checks=checks,
            integrations=self.integration_status(),
        )
