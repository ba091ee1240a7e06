"""
Notification Service

Delivers notification events emitted by the lifecycle services once their
state change has committed: an in-app row, plus optional email and WhatsApp.
Delivery problems are logged and counted, never raised, so a failed
notification cannot undo a committed state change.
"""

import asyncio
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from pydantic import EmailStr, TypeAdapter
from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.core.exceptions import NotFoundError
from crestcat.core.logging import get_logger
from crestcat.core.settings import settings
from crestcat.db.session import AsyncSessionLocal
from crestcat.mailer.service import EmailService, email_service
from crestcat.models.notification import Notification
from crestcat.monitoring.prometheus import get_notification_failures_total
from crestcat.schemas.notification import (
    EmailMessage,
    NotificationEvent,
    NotificationList,
    NotificationResponse,
)
from crestcat.services.whatsapp import WhatsAppClient

# Initialize logger
logger = get_logger(__name__)

_email_address = TypeAdapter(EmailStr)


class NotificationService:
    """Sends notification events and serves the in-app inboxes."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        mailer: Optional[EmailService] = None,
        whatsapp: Optional[WhatsAppClient] = None
    ):
        self.session_factory = session_factory
        self.mailer = mailer or email_service
        self.whatsapp = whatsapp or WhatsAppClient()

    async def notify(self, event: NotificationEvent) -> None:
        """
        Deliver one event on every channel it names.

        The in-app row is written in a session of its own; email and WhatsApp
        run concurrently afterwards.
        """
        await self._store(event)

        sends = []
        channels = []
        if event.email is not None:
            sends.append(self._send_email(event.email))
            channels.append("email")
        if event.whatsapp:
            sends.append(self.whatsapp.send(event.whatsapp))
            channels.append("whatsapp")

        if not sends:
            return

        results = await asyncio.gather(*sends, return_exceptions=True)
        for channel, outcome in zip(channels, results):
            if isinstance(outcome, Exception):
                self._failed(channel, event, outcome)

    async def _send_email(self, message: EmailMessage) -> bool:
        """
        Validate the recipient, then hand the message to the mailer.

        Raises:
            pydantic.ValidationError: The recipient address is not deliverable
        """
        recipient = _email_address.validate_python(message.to)
        return await self.mailer.send_email(
            recipient,
            message.subject,
            message.template_name,
            message.template_data
        )

    async def _store(self, event: NotificationEvent) -> None:
        try:
            async with self.session_factory() as session:
                session.add(
                    Notification(
                        user_id=None if event.admin else event.user_id,
                        title=event.title,
                        message=event.message,
                        category=event.category.value,
                        meta_info={"kind": event.kind, **event.payload},
                    )
                )
                await session.commit()
        except Exception as e:
            self._failed("in_app", event, e)

    def _failed(self, channel: str, event: NotificationEvent, error: Exception) -> None:
        get_notification_failures_total().labels(channel=channel).inc()
        logger.error(
            "Notification delivery failed",
            exc_info=error,
            extra={"channel": channel, "kind": event.kind, "error": str(error)}
        )

    async def list_for_user(self, user_id: UUID, limit: Optional[int] = None) -> NotificationList:
        """Most recent notifications of one user, with the unread count."""
        return await self._inbox(Notification.user_id == user_id, limit)

    async def list_admin(self, limit: Optional[int] = None) -> NotificationList:
        """Most recent admin inbox notifications, with the unread count."""
        return await self._inbox(Notification.user_id.is_(None), limit)

    async def _inbox(self, owner_clause, limit: Optional[int]) -> NotificationList:
        limit = limit or settings.ledger.NOTIFICATION_LIST_LIMIT
        async with self.session_factory() as session:
            result = await session.execute(
                select(Notification)
                .where(owner_clause)
                .order_by(desc(Notification.created_at))
                .limit(limit)
            )
            items: List[Notification] = list(result.scalars().all())

            unread = await session.scalar(
                select(func.count(Notification.id)).where(owner_clause, Notification.is_read.is_(False))
            )

        return NotificationList(
            items=[NotificationResponse.model_validate(n) for n in items],
            unread_count=unread or 0
        )

    async def mark_read(self, notification_id: UUID, user_id: Optional[UUID]) -> NotificationResponse:
        """
        Mark one notification read.

        Args:
            notification_id: Notification to mark
            user_id: Inbox owner, or None for the admin inbox

        Raises:
            NotFoundError: If the notification is not in that inbox
        """
        async with self.session_factory() as session:
            notification = await session.get(Notification, notification_id)
            if notification is None or notification.user_id != user_id:
                raise NotFoundError("Notification not found")

            if not notification.is_read:
                notification.mark_read(datetime.utcnow())
                await session.commit()
            return NotificationResponse.model_validate(notification)

    async def mark_all_read(self, user_id: Optional[UUID]) -> int:
        """Mark every unread notification of an inbox read; returns the count."""
        owner_clause = Notification.user_id.is_(None) if user_id is None else Notification.user_id == user_id
        async with self.session_factory() as session:
            result = await session.execute(
                update(Notification)
                .where(owner_clause, Notification.is_read.is_(False))
                .values(is_read=True, read_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount
