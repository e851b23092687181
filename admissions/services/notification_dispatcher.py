"""
Notification dispatcher: post-commit, best-effort fan-out.

DELIVERY MODEL
==============

The admission controller publishes notices only after its transaction has
committed. Publishing is a `put_nowait` onto an in-process queue, so a
request never waits on email or notification writes, and a full queue drops
the notice (logged + counted) instead of failing the request.

A pool of worker tasks drains the queue. Each notice fans out to up to two
independent deliveries:

  email   -> EmailGateway.send_<kind>_email(...)
  in_app  -> InAppNotificationStore.create_notification / notify_all_admins

Each delivery is retried with exponential backoff. A delivery that still
fails is logged and counted, and never affects the other delivery, other
notices, or the already-committed admission result.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

from admissions.core.config import get_settings
from admissions.core.exceptions import NotificationError
from admissions.core.logging import get_logger
from admissions.core.metrics import (
    notification_queue_depth,
    notification_retries,
    notifications_dropped,
    record_delivery,
)
from admissions.core.permissions import Actor
from admissions.core.retry import run_with_retry
from admissions.db.session import get_session_factory
from admissions.models.enums import NotificationType
from admissions.services.interfaces.email_gateway import EmailGateway
from admissions.services.notification_store import InAppNotificationStore
from admissions.services.strategy_factory import get_email_gateway

logger = get_logger(__name__)


class NoticeKind(str, enum.Enum):
    JOIN_REQUESTED = "join_requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    REMOVED = "removed"
    LEFT = "left"
    ADDED = "added"


@dataclass(frozen=True)
class Recipient:
    user_id: int
    email: str
    name: str
    avatar: Optional[str] = None


@dataclass(frozen=True)
class Notice:
    """One participant-facing consequence of a committed transition."""

    kind: NoticeKind
    event_id: int
    event_title: str
    participant: Recipient
    actor: Optional[Actor] = None
    reason: Optional[str] = None


def _with_reason(text: str, reason: Optional[str]) -> str:
    return f"{text} Reason: {reason}" if reason else text


def in_app_content(notice: Notice) -> str:
    title = notice.event_title
    name = notice.participant.name
    if notice.kind == NoticeKind.JOIN_REQUESTED:
        return f'{name} has requested to join event: "{title}"'
    if notice.kind == NoticeKind.LEFT:
        return f'{name} has left event: "{title}"'
    if notice.kind == NoticeKind.APPROVED:
        return f'Your participation in "{title}" has been approved!'
    if notice.kind == NoticeKind.REJECTED:
        return _with_reason(f'Your request to join "{title}" was not approved.', notice.reason)
    if notice.kind == NoticeKind.REMOVED:
        return _with_reason(f'You have been removed from "{title}".', notice.reason)
    return f'You have been added to "{title}".'


_NOTIFICATION_TYPES = {
    NoticeKind.JOIN_REQUESTED: NotificationType.JOIN_REQUEST,
    NoticeKind.APPROVED: NotificationType.APPROVAL,
    NoticeKind.REJECTED: NotificationType.REJECTION,
    NoticeKind.REMOVED: NotificationType.REMOVAL,
    NoticeKind.LEFT: NotificationType.LEAVE,
    NoticeKind.ADDED: NotificationType.ADDED,
}

# Notices addressed to the admins rather than to the participant
_ADMIN_FACING = {NoticeKind.JOIN_REQUESTED, NoticeKind.LEFT}


class NotificationDispatcher:
    def __init__(
        self,
        email_gateway: EmailGateway,
        store: InAppNotificationStore,
        *,
        workers: int = 4,
        queue_maxsize: int = 1000,
        max_attempts: int = 3,
        retry_base_delay: float = 0.5,
    ):
        self.email_gateway = email_gateway
        self.store = store
        self.worker_count = max(workers, 1)
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self._queue: asyncio.Queue[Notice] = asyncio.Queue(maxsize=queue_maxsize)
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def publish(self, notices: Iterable[Notice]) -> int:
        """Enqueue notices without waiting. Returns how many were accepted."""
        accepted = 0
        for notice in notices:
            try:
                self._queue.put_nowait(notice)
                accepted += 1
            except asyncio.QueueFull:
                notifications_dropped.inc()
                logger.warning(
                    "notification_dropped",
                    kind=notice.kind.value,
                    event_id=notice.event_id,
                    user_id=notice.participant.user_id,
                )
        notification_queue_depth.set(self._queue.qsize())
        return accepted

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._run_worker(i), name=f"notification-worker-{i}")
            for i in range(self.worker_count)
        ]
        logger.info("notification_dispatcher_started", workers=self.worker_count)

    async def stop(self, timeout: float = 5.0) -> None:
        """Give queued notices `timeout` seconds to flush, then cancel workers."""
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("notification_dispatcher_stop_timeout", pending=self._queue.qsize())
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("notification_dispatcher_stopped")

    async def drain(self) -> None:
        """
        Wait until every published notice has been handled. Without running
        workers the queue is processed inline, one notice at a time.
        """
        if self._workers:
            await self._queue.join()
            return
        while not self._queue.empty():
            notice = self._queue.get_nowait()
            try:
                await self.deliver(notice)
            finally:
                self._queue.task_done()
        notification_queue_depth.set(0)

    async def _run_worker(self, index: int) -> None:
        while True:
            notice = await self._queue.get()
            try:
                await self.deliver(notice)
            except Exception as e:
                # deliver() isolates channel failures; anything here is a bug
                logger.error("notification_worker_error", worker=index, error=str(e), exc_info=True)
            finally:
                self._queue.task_done()
                notification_queue_depth.set(self._queue.qsize())

    async def deliver(self, notice: Notice) -> list[NotificationError]:
        """Run the email and in-app deliveries for one notice concurrently."""
        steps: list[tuple[str, Callable[[], Awaitable[object]]]] = []
        email_step = self._email_step(notice)
        if email_step is not None:
            steps.append(("email", email_step))
        steps.append(("in_app", lambda: self._in_app_step(notice)))

        results = await asyncio.gather(*(self._attempt(channel, step, notice) for channel, step in steps))
        return [failure for failure in results if failure is not None]

    async def _attempt(
        self,
        channel: str,
        step: Callable[[], Awaitable[object]],
        notice: Notice,
    ) -> Optional[NotificationError]:
        async def count_retry(attempt: int, exc: BaseException) -> None:
            notification_retries.labels(channel=channel).inc()

        try:
            await run_with_retry(
                step,
                attempts=self.max_attempts,
                base_delay_seconds=self.retry_base_delay,
                on_retry=count_retry,
                logger=logger,
            )
        except Exception as e:
            record_delivery(channel, delivered=False)
            logger.error(
                "notification_delivery_failed",
                channel=channel,
                kind=notice.kind.value,
                event_id=notice.event_id,
                user_id=notice.participant.user_id,
                error=str(e),
            )
            return NotificationError(channel, str(e))

        record_delivery(channel, delivered=True)
        logger.debug(
            "notification_delivered",
            channel=channel,
            kind=notice.kind.value,
            event_id=notice.event_id,
            user_id=notice.participant.user_id,
        )
        return None

    def _email_step(self, notice: Notice) -> Optional[Callable[[], Awaitable[None]]]:
        gateway = self.email_gateway
        p = notice.participant
        if notice.kind == NoticeKind.JOIN_REQUESTED:
            return lambda: gateway.send_pending_email(p.email, p.name, notice.event_title)
        if notice.kind in (NoticeKind.APPROVED, NoticeKind.ADDED):
            return lambda: gateway.send_approval_email(p.email, p.name, notice.event_title)
        if notice.kind == NoticeKind.REJECTED:
            return lambda: gateway.send_rejection_email(p.email, p.name, notice.event_title, notice.reason)
        if notice.kind == NoticeKind.REMOVED:
            return lambda: gateway.send_removal_email(p.email, p.name, notice.event_title, notice.reason)
        return None

    async def _in_app_step(self, notice: Notice) -> None:
        notification_type = _NOTIFICATION_TYPES[notice.kind].value
        content = in_app_content(notice)
        if notice.kind in _ADMIN_FACING:
            await self.store.notify_all_admins(notification_type, content, notice.event_id, notice.actor)
        else:
            await self.store.create_notification(
                notice.participant.user_id, notification_type, content, notice.event_id, notice.actor
            )


_dispatcher: Optional[NotificationDispatcher] = None


def build_dispatcher(email_gateway: EmailGateway, store: InAppNotificationStore, settings) -> NotificationDispatcher:
    return NotificationDispatcher(
        email_gateway,
        store,
        workers=settings.NOTIFY_WORKERS,
        queue_maxsize=settings.NOTIFY_QUEUE_MAXSIZE,
        max_attempts=settings.NOTIFY_MAX_ATTEMPTS,
        retry_base_delay=settings.NOTIFY_RETRY_BASE_DELAY,
    )


def get_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher, built lazily from settings."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = build_dispatcher(
            get_email_gateway(), InAppNotificationStore(get_session_factory()), get_settings()
        )
    return _dispatcher
