import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, update

from nephrocare.cache import CacheClient
from nephrocare.database.connection import Database
from nephrocare.database.models import Historique, utcnow
from nephrocare.errors import ApiError, InternalError, NotFoundError, UnauthorizedError
from nephrocare.schemas import AlertRead
from nephrocare.security import SessionUser

logger = logging.getLogger(__name__)


class AlertService:
    """Clinical alerts stored as history entries; resolution is one-way."""

    def __init__(self, database: Database, cache: CacheClient):
        self.database = database
        self.cache = cache

    @staticmethod
    def _cache_key(alert_id: str) -> str:
        return f"alerts:{alert_id}"

    async def _load(self, alert_id: str) -> Optional[Dict[str, Any]]:
        async with self.database.session() as session:
            result = await session.execute(select(Historique).where(Historique.id == alert_id))
            alert = result.scalar_one_or_none()
            if alert is None:
                return None
            return AlertRead.model_validate(alert).model_dump(mode="json", by_alias=True)

    async def get(self, alert_id: str) -> Optional[Dict[str, Any]]:
        return await self.cache.with_cache(self._cache_key(alert_id), lambda: self._load(alert_id))

    async def resolve(self, alert_id: str, caller: Optional[SessionUser]) -> Dict[str, Any]:
        """
        Mark an alert resolved and return its updated state.

        Resolving an already-resolved alert returns it unchanged without a
        write. The update is guarded by ``is_resolved = false`` so concurrent
        resolves write at most once.
        """
        try:
            alert = await self.get(alert_id)
            if alert is None:
                raise NotFoundError("Alerte non trouvée")

            if alert.get("isResolved"):
                return alert

            if caller is None:
                raise UnauthorizedError()

            async with self.database.session() as session:
                result = await session.execute(
                    update(Historique)
                    .where(Historique.id == alert_id, Historique.is_resolved.is_(False))
                    .values(is_resolved=True, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount:
                    logger.info("Alert %s resolved by %s", alert_id, caller.user_id)

            await self.cache.delete(self._cache_key(alert_id))
            updated = await self.get(alert_id)
            if updated is None:
                raise NotFoundError("Alerte non trouvée")
            return updated
        except ApiError:
            raise
        except Exception as exc:
            logger.error("Failed to resolve alert %s: %s", alert_id, exc, exc_info=True)
            raise InternalError("Erreur lors de la résolution de l'alerte") from exc
