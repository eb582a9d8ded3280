"""
Notification inbox: creation, filtered listing, read state and preferences.

Reads go through the cache facade under ``notifications:<user>:...`` keys and
every write drops the caller's whole key space, so a stale list or counter
lives at most until the next mutation.
"""

import hashlib
import json
import logging
import math
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from sqlalchemy import and_, case, func, or_, select, update

from nephrocare.cache import CacheClient
from nephrocare.database.connection import Database
from nephrocare.database.models import (
    Notification,
    NotificationPreference,
    Patient,
    User,
    utcnow,
)
from nephrocare.errors import NotFoundError
from nephrocare.schemas import (
    PRIORITY_RANK,
    NotificationCreate,
    NotificationFilters,
    NotificationRead,
    PreferenceRead,
    PreferenceUpdate,
)

logger = logging.getLogger(__name__)

UNREAD_COUNT_TTL = 60
STATS_TTL = 300

_SORT_COLUMNS = {
    "createdAt": Notification.created_at,
    "scheduledFor": Notification.scheduled_for,
    "expiresAt": Notification.expires_at,
}


def _serialize(notification: Notification) -> Dict[str, Any]:
    return NotificationRead.model_validate(notification).model_dump(mode="json", by_alias=True)


def _filters_digest(filters: NotificationFilters) -> str:
    raw = json.dumps(filters.model_dump(mode="json"), sort_keys=True)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


class NotificationService:
    """Per-clinician notification inbox backed by the database and cache."""

    def __init__(self, database: Database, cache: CacheClient):
        self.database = database
        self.cache = cache

    @staticmethod
    def _user_prefix(user_id: str) -> str:
        return f"notifications:{user_id}"

    async def _invalidate_user(self, user_id: str) -> None:
        await self.cache.delete_by_pattern(f"{self._user_prefix(user_id)}:*")

    # ==================== Create ====================

    async def _preference_block(self, session, user_id: str, payload: NotificationCreate) -> Optional[str]:
        result = await session.execute(
            select(NotificationPreference).where(
                NotificationPreference.user_id == user_id,
                NotificationPreference.category == payload.category,
            )
        )
        preference = result.scalar_one_or_none()
        if preference is None:
            return None

        if not preference.enabled:
            return f"Notifications disabled for category {payload.category}"

        minimum = PRIORITY_RANK.get(preference.min_priority, PRIORITY_RANK["normal"])
        if PRIORITY_RANK[payload.priority] < minimum:
            return f"Priority {payload.priority} is below the minimum {preference.min_priority}"
        return None

    async def create(self, user_id: str, payload: NotificationCreate) -> Dict[str, Any]:
        """
        Store a notification for ``user_id``.

        Returns the stored record, or ``{"skipped": True, "reason": ...}`` when
        the user's preferences filter it out.
        """
        async with self.database.session() as session:
            if await session.get(User, user_id) is None:
                raise NotFoundError(f"User {user_id} not found")

            if payload.patient_id and await session.get(Patient, payload.patient_id) is None:
                raise NotFoundError(f"Patient {payload.patient_id} not found")

            reason = await self._preference_block(session, user_id, payload)
            if reason:
                logger.info("Notification for user %s skipped: %s", user_id, reason)
                return {"skipped": True, "reason": reason}

            now = utcnow()
            notification = Notification(
                id=str(uuid4()),
                user_id=user_id,
                patient_id=payload.patient_id,
                title=payload.title,
                message=payload.message,
                type=payload.type,
                category=payload.category,
                priority=payload.priority,
                status=payload.status,
                read=False,
                action_required=payload.action_required,
                action_type=payload.action_type,
                action_url=payload.action_url,
                scheduled_for=payload.scheduled_for,
                expires_at=payload.expires_at,
                notification_metadata=payload.metadata,
                created_at=now,
                updated_at=now,
            )
            session.add(notification)
            await session.flush()
            record = _serialize(notification)

        await self._invalidate_user(user_id)
        logger.info(
            "Notification %s created for user %s (%s/%s)",
            record["id"],
            user_id,
            payload.category,
            payload.priority,
        )
        return record

    # ==================== Read ====================

    @staticmethod
    def _conditions(user_id: str, filters: NotificationFilters) -> List[Any]:
        conditions = [Notification.user_id == user_id]
        if filters.patient_id:
            conditions.append(Notification.patient_id == filters.patient_id)
        if filters.type:
            conditions.append(Notification.type.in_(filters.type))
        if filters.category:
            conditions.append(Notification.category.in_(filters.category))
        if filters.priority:
            conditions.append(Notification.priority.in_(filters.priority))
        if filters.status:
            conditions.append(Notification.status.in_(filters.status))
        if filters.read is not None:
            conditions.append(Notification.read == filters.read)
        if filters.action_required is not None:
            conditions.append(Notification.action_required == filters.action_required)
        if filters.start_date:
            conditions.append(Notification.created_at >= filters.start_date)
        if filters.end_date:
            conditions.append(Notification.created_at <= filters.end_date)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            conditions.append(
                or_(Notification.title.ilike(pattern), Notification.message.ilike(pattern))
            )
        return conditions

    @staticmethod
    def _ordering(filters: NotificationFilters) -> List[Any]:
        if filters.sort_by == "priority":
            column = case(PRIORITY_RANK, value=Notification.priority, else_=0)
        else:
            column = _SORT_COLUMNS[filters.sort_by]

        if filters.sort_order == "asc":
            return [column.asc(), Notification.id.asc()]
        return [column.desc(), Notification.id.desc()]

    async def _query_page(self, user_id: str, filters: NotificationFilters) -> Dict[str, Any]:
        conditions = self._conditions(user_id, filters)
        async with self.database.session() as session:
            total = await session.scalar(
                select(func.count()).select_from(Notification).where(and_(*conditions))
            )
            result = await session.execute(
                select(Notification)
                .where(and_(*conditions))
                .order_by(*self._ordering(filters))
                .offset((filters.page - 1) * filters.limit)
                .limit(filters.limit)
            )
            rows = result.scalars().all()

        total = total or 0
        return {
            "data": [_serialize(row) for row in rows],
            "pagination": {
                "page": filters.page,
                "limit": filters.limit,
                "totalItems": total,
                "totalPages": math.ceil(total / filters.limit) if total else 0,
            },
        }

    async def list(self, user_id: str, filters: Optional[NotificationFilters] = None) -> Dict[str, Any]:
        """Filtered, paginated inbox page for ``user_id``."""
        filters = filters or NotificationFilters()
        key = f"{self._user_prefix(user_id)}:list:{_filters_digest(filters)}"
        return await self.cache.with_cache(key, lambda: self._query_page(user_id, filters))

    async def _get_owned(self, session, notification_id: str, user_id: str) -> Notification:
        result = await session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return notification

    async def get(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        async with self.database.session() as session:
            return _serialize(await self._get_owned(session, notification_id, user_id))

    # ==================== Mutations ====================

    async def mark_read(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        """Mark one notification read. Already-read notifications are left untouched."""
        async with self.database.session() as session:
            notification = await self._get_owned(session, notification_id, user_id)
            if notification.read:
                return _serialize(notification)

            await session.execute(
                update(Notification)
                .where(
                    Notification.id == notification_id,
                    Notification.user_id == user_id,
                    Notification.read.is_(False),
                )
                .values(read=True, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.refresh(notification)
            record = _serialize(notification)

        await self._invalidate_user(user_id)
        return record

    async def mark_all_read(self, user_id: str) -> int:
        async with self.database.session() as session:
            result = await session.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.read.is_(False))
                .values(read=True, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount or 0

        if updated:
            await self._invalidate_user(user_id)
        logger.info("Marked %d notifications read for user %s", updated, user_id)
        return updated

    async def update_status(self, notification_id: str, user_id: str, status: str) -> Dict[str, Any]:
        async with self.database.session() as session:
            notification = await self._get_owned(session, notification_id, user_id)
            if notification.status == status:
                return _serialize(notification)

            notification.status = status
            notification.updated_at = utcnow()
            await session.flush()
            record = _serialize(notification)

        await self._invalidate_user(user_id)
        return record

    # ==================== Counters ====================

    async def unread_count(self, user_id: str) -> int:
        async def _count() -> int:
            async with self.database.session() as session:
                count = await session.scalar(
                    select(func.count())
                    .select_from(Notification)
                    .where(Notification.user_id == user_id, Notification.read.is_(False))
                )
            return count or 0

        key = f"{self._user_prefix(user_id)}:unread-count"
        return await self.cache.with_cache(key, _count, UNREAD_COUNT_TTL)

    async def _compute_stats(self, user_id: str) -> Dict[str, Any]:
        owned = Notification.user_id == user_id
        async with self.database.session() as session:
            total = await session.scalar(select(func.count()).select_from(Notification).where(owned))
            unread = await session.scalar(
                select(func.count()).select_from(Notification).where(owned, Notification.read.is_(False))
            )
            action_required = await session.scalar(
                select(func.count())
                .select_from(Notification)
                .where(
                    owned,
                    Notification.action_required.is_(True),
                    Notification.status.in_(("pending", "in_progress")),
                )
            )
            by_priority = await session.execute(
                select(Notification.priority, func.count()).where(owned).group_by(Notification.priority)
            )
            by_category = await session.execute(
                select(Notification.category, func.count()).where(owned).group_by(Notification.category)
            )

            return {
                "total": total or 0,
                "unread": unread or 0,
                "actionRequired": action_required or 0,
                "byPriority": {priority: count for priority, count in by_priority.all()},
                "byCategory": {category: count for category, count in by_category.all()},
            }

    async def stats(self, user_id: str) -> Dict[str, Any]:
        key = f"{self._user_prefix(user_id)}:stats"
        return await self.cache.with_cache(key, lambda: self._compute_stats(user_id), STATS_TTL)

    # ==================== Preferences ====================

    async def get_preferences(self, user_id: str) -> List[Dict[str, Any]]:
        async with self.database.session() as session:
            result = await session.execute(
                select(NotificationPreference)
                .where(NotificationPreference.user_id == user_id)
                .order_by(NotificationPreference.category)
            )
            return [
                PreferenceRead.model_validate(row).model_dump(mode="json", by_alias=True)
                for row in result.scalars().all()
            ]

    async def update_preferences(
        self, user_id: str, update_data: Union[PreferenceUpdate, Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Create or update the preference row for one category."""
        if isinstance(update_data, dict):
            update_data = PreferenceUpdate.model_validate(update_data)

        changes = update_data.model_dump(exclude_unset=True, exclude_none=True, exclude={"category"})
        async with self.database.session() as session:
            result = await session.execute(
                select(NotificationPreference).where(
                    NotificationPreference.user_id == user_id,
                    NotificationPreference.category == update_data.category,
                )
            )
            preference = result.scalar_one_or_none()
            if preference is None:
                preference = NotificationPreference(
                    id=str(uuid4()),
                    user_id=user_id,
                    category=update_data.category,
                    enabled=True,
                    email_enabled=True,
                    push_enabled=True,
                    sms_enabled=False,
                    min_priority="normal",
                    created_at=utcnow(),
                )
                session.add(preference)

            for field_name, value in changes.items():
                setattr(preference, field_name, value)
            preference.updated_at = utcnow()
            await session.flush()
            record = PreferenceRead.model_validate(preference).model_dump(mode="json", by_alias=True)

        logger.info("Notification preferences updated for user %s (%s)", user_id, update_data.category)
        return record
