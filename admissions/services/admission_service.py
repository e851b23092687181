"""
Admission controller: join / approve / reject / remove / unjoin / manual add.

TRANSACTION MODEL
=================

Each state-changing operation is one transaction on the request session:

  1. Precondition checks (event open, pair not joined, pair not blocked, ...)
  2. Participation insert/update/delete
  3. Matching counter UPDATE on the event (capacity tracker)
  4. Rejection ledger upsert (reject only)
  5. COMMIT, or ROLLBACK on any error

Only after the commit succeeds are notices handed to the dispatcher, so a
failed email can never undo an admission and a rolled-back admission never
sends an email.

Two concurrent joins for the same pair race on the unique constraint of
`event_participants`; the loser's IntegrityError becomes AlreadyJoinedError.
Two joins of different users against the last slot both succeed unless
ENFORCE_CAPACITY is on (see services/capacity.py).
"""

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.config import get_settings
from admissions.core.exceptions import (
    AdmissionError,
    AlreadyJoinedError,
    AlreadyProcessedError,
    BlockedError,
    EventClosedError,
    NotFoundError,
    NotJoinedError,
    PersistenceError,
    ValidationError,
)
from admissions.core.logging import get_logger
from admissions.core.metrics import admission_latency, db_read_retries, record_transition
from admissions.core.permissions import (
    Actor,
    Capability,
    has_capability,
    require_capability,
    resolve_participation_role,
)
from admissions.core.retry import run_with_retry
from admissions.models.enums import EventStatus, ParticipationRole, ParticipationStatus, Role
from admissions.models.event import Event
from admissions.models.participation import Participation
from admissions.models.rejection import RejectionRecord
from admissions.models.user import User
from admissions.services import capacity, registry, rejection_ledger
from admissions.services.notification_dispatcher import Notice, NoticeKind, NotificationDispatcher, Recipient
from admissions.services.registry import ParticipantQuery

logger = get_logger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class ParticipationCheck:
    has_joined: bool
    status: Optional[str] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class RejectionCheck:
    is_rejected: bool
    reason: Optional[str] = None
    rejected_at: Optional[datetime] = None


@dataclass(frozen=True)
class BulkRemovalFailure:
    user_id: int
    error: str


@dataclass
class BulkRemovalResult:
    removed_count: int = 0
    failures: list[BulkRemovalFailure] = field(default_factory=list)


def _recipient(user: User) -> Recipient:
    return Recipient(user_id=user.id, email=user.email, name=user.name, avatar=user.avatar)


class AdmissionController:
    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher,
        *,
        enforce_capacity: Optional[bool] = None,
        read_retries: Optional[int] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.enforce_capacity = settings.ENFORCE_CAPACITY if enforce_capacity is None else enforce_capacity
        self.read_retries = settings.DB_READ_RETRIES if read_retries is None else read_retries

    @asynccontextmanager
    async def _transaction(self, operation: str, **context):
        start = time.perf_counter()
        try:
            yield
            await self.db.commit()
        except AdmissionError as e:
            await self.db.rollback()
            record_transition(operation, "rejected")
            logger.info(f"{operation}_refused", error=e.detail, error_type=type(e).__name__, **context)
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            record_transition(operation, "error")
            logger.error(f"{operation}_failed", error=str(e), **context)
            raise PersistenceError(f"Failed to {operation.replace('_', ' ')}") from e
        except Exception:
            await self.db.rollback()
            record_transition(operation, "error")
            raise
        record_transition(operation, "success")
        admission_latency.labels(operation=operation).observe(time.perf_counter() - start)

    async def _read(self, operation, *args):
        """Reads are retried on transient database errors; writes never are."""

        async def reset(attempt: int, exc: BaseException) -> None:
            db_read_retries.inc()
            await self.db.rollback()

        return await run_with_retry(
            operation,
            *args,
            attempts=self.read_retries + 1,
            base_delay_seconds=0.05,
            retry_on=(OperationalError,),
            on_retry=reset,
            logger=logger,
        )

    async def _get_event(self, event_id: int) -> Event:
        event = await self.db.get(Event, event_id, populate_existing=True)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        return event

    async def _get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def _require_participation(self, event_id: int, user_id: int) -> Participation:
        participation = await registry.get_participation(self.db, event_id, user_id, for_update=True)
        if participation is None:
            raise NotFoundError("Participant not found in this event")
        return participation

    async def _ensure_admissible(self, event: Event, user_id: int, *, self_service: bool) -> None:
        """Shared preconditions of join and manual add."""
        if event.status != EventStatus.OPEN.value:
            raise EventClosedError("Event is not open for participation")

        if await registry.get_participation(self.db, event.id, user_id) is not None:
            if self_service:
                raise AlreadyJoinedError("You have already joined this event")
            raise AlreadyJoinedError("User is already a participant of this event")

        rejection = await rejection_ledger.get_rejection(self.db, event.id, user_id)
        if rejection is not None:
            raise BlockedError(
                "Your request to join this event was rejected; you cannot rejoin"
                if self_service
                else "User was rejected from this event and cannot be added",
                reason=rejection.reason,
            )

    async def _admit(
        self,
        event: Event,
        user_id: int,
        role: ParticipationRole,
        status: ParticipationStatus,
        *,
        self_service: bool,
    ) -> Participation:
        try:
            participation = await registry.insert_participation(self.db, event.id, user_id, role, status)
        except IntegrityError:
            # Lost a race with a concurrent insert for the same (event, user)
            if self_service:
                raise AlreadyJoinedError("You have already joined this event")
            raise AlreadyJoinedError("User is already a participant of this event")
        await capacity.increment(self.db, event.id, role, enforce=self.enforce_capacity)
        return participation

    # ------------------------------------------------------------------
    # Self-service transitions
    # ------------------------------------------------------------------

    async def join(self, event_id: int, actor: Actor, role: Optional[str] = None) -> Participation:
        """ABSENT -> PENDING, counted against the role's pool immediately."""
        require_capability(actor, Capability.JOIN_EVENTS)
        pool = resolve_participation_role(actor.role, role)

        async with self._transaction("join", event_id=event_id, user_id=actor.id):
            event = await self._get_event(event_id)
            await self._ensure_admissible(event, actor.id, self_service=True)
            participation = await self._admit(event, actor.id, pool, ParticipationStatus.PENDING, self_service=True)
            user = await self._get_user(actor.id)

        logger.info("participant_joined", event_id=event_id, user_id=actor.id, role=pool.value)
        self.dispatcher.publish([
            Notice(NoticeKind.JOIN_REQUESTED, event.id, event.title, _recipient(user), actor=actor),
        ])
        return participation

    async def unjoin(self, event_id: int, actor: Actor) -> Participation:
        """Leave the event in any status; no ledger effect."""
        async with self._transaction("unjoin", event_id=event_id, user_id=actor.id):
            event = await self._get_event(event_id)
            participation = await registry.get_participation(self.db, event_id, actor.id, for_update=True)
            if participation is None:
                raise NotJoinedError("You have not joined this event")
            await registry.delete_participation(self.db, participation)
            await capacity.decrement(self.db, event_id, ParticipationRole(participation.role))
            user = await self._get_user(actor.id)

        logger.info("participant_left", event_id=event_id, user_id=actor.id, role=participation.role)
        self.dispatcher.publish([
            Notice(NoticeKind.LEFT, event.id, event.title, _recipient(user), actor=actor),
        ])
        return participation

    # ------------------------------------------------------------------
    # Admin transitions
    # ------------------------------------------------------------------

    async def approve(self, event_id: int, user_id: int, actor: Actor) -> Participation:
        """PENDING -> ACTIVE. Already counted at join, so no counter change."""
        require_capability(actor, Capability.MANAGE_PARTICIPANTS)

        async with self._transaction("approve", event_id=event_id, user_id=user_id, admin_id=actor.id):
            event = await self._get_event(event_id)
            participation = await self._require_participation(event_id, user_id)
            if participation.status != ParticipationStatus.PENDING.value:
                raise AlreadyProcessedError("Participant is already approved or has another status")
            await registry.set_status(self.db, participation, ParticipationStatus.ACTIVE)
            user = await self._get_user(user_id)

        logger.info("participant_approved", event_id=event_id, user_id=user_id, admin_id=actor.id)
        self.dispatcher.publish([
            Notice(NoticeKind.APPROVED, event.id, event.title, _recipient(user), actor=actor),
        ])
        return participation

    async def reject(
        self,
        event_id: int,
        user_id: int,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> RejectionRecord:
        """Delete the participation and block the pair permanently."""
        require_capability(actor, Capability.MANAGE_PARTICIPANTS)

        async with self._transaction("reject", event_id=event_id, user_id=user_id, admin_id=actor.id):
            event = await self._get_event(event_id)
            participation = await self._require_participation(event_id, user_id)
            user = await self._get_user(user_id)
            await registry.delete_participation(self.db, participation)
            await capacity.decrement(self.db, event_id, ParticipationRole(participation.role))
            record = await rejection_ledger.upsert_rejection(self.db, event_id, user_id, actor.id, reason)

        logger.info("participant_rejected", event_id=event_id, user_id=user_id, admin_id=actor.id)
        self.dispatcher.publish([
            Notice(NoticeKind.REJECTED, event.id, event.title, _recipient(user), actor=actor, reason=reason),
        ])
        return record

    async def remove(
        self,
        event_id: int,
        user_id: int,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Participation:
        """Operational removal: same bookkeeping as reject, but the user may rejoin."""
        require_capability(actor, Capability.MANAGE_PARTICIPANTS)

        async with self._transaction("remove", event_id=event_id, user_id=user_id, admin_id=actor.id):
            event = await self._get_event(event_id)
            participation = await self._require_participation(event_id, user_id)
            user = await self._get_user(user_id)
            await registry.delete_participation(self.db, participation)
            await capacity.decrement(self.db, event_id, ParticipationRole(participation.role))

        logger.info("participant_removed", event_id=event_id, user_id=user_id, admin_id=actor.id)
        self.dispatcher.publish([
            Notice(NoticeKind.REMOVED, event.id, event.title, _recipient(user), actor=actor, reason=reason),
        ])
        return participation

    async def bulk_remove(
        self,
        event_id: int,
        user_ids: list[int],
        actor: Actor,
        reason: Optional[str] = None,
    ) -> BulkRemovalResult:
        """
        Remove each user in its own transaction. One failure is recorded and
        the rest are still processed.
        """
        require_capability(actor, Capability.MANAGE_PARTICIPANTS)
        if not user_ids:
            raise ValidationError("user_ids must contain at least one user id")
        await self._read(self._get_event, event_id)

        result = BulkRemovalResult()
        for user_id in dict.fromkeys(user_ids):
            try:
                await self.remove(event_id, user_id, actor, reason)
            except AdmissionError as e:
                result.failures.append(BulkRemovalFailure(user_id=user_id, error=e.detail))
            else:
                result.removed_count += 1

        logger.info(
            "participants_bulk_removed",
            event_id=event_id,
            admin_id=actor.id,
            removed=result.removed_count,
            failed=len(result.failures),
        )
        return result

    async def add_participant(
        self,
        event_id: int,
        user_id: int,
        actor: Actor,
        role: Optional[str] = None,
    ) -> Participation:
        """Manual add: ABSENT -> ACTIVE under the same blocking and capacity rules as join."""
        require_capability(actor, Capability.MANAGE_PARTICIPANTS)

        async with self._transaction("add_participant", event_id=event_id, user_id=user_id, admin_id=actor.id):
            event = await self._get_event(event_id)
            user = await self._get_user(user_id)
            account = Actor.from_user(user)
            if not user.is_active or not has_capability(account, Capability.JOIN_EVENTS):
                raise ValidationError(f"User {user_id} cannot participate in events")
            pool = resolve_participation_role(Role(user.role), role)
            await self._ensure_admissible(event, user_id, self_service=False)
            participation = await self._admit(event, user_id, pool, ParticipationStatus.ACTIVE, self_service=False)

        logger.info("participant_added", event_id=event_id, user_id=user_id, admin_id=actor.id, role=pool.value)
        self.dispatcher.publish([
            Notice(NoticeKind.ADDED, event.id, event.title, _recipient(user), actor=actor),
        ])
        return participation

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def check_participation(self, event_id: int, user_id: int) -> ParticipationCheck:
        participation = await self._read(registry.get_participation, self.db, event_id, user_id)
        if participation is None:
            return ParticipationCheck(has_joined=False)
        return ParticipationCheck(has_joined=True, status=participation.status, role=participation.role)

    async def check_rejection(self, event_id: int, user_id: int) -> RejectionCheck:
        record = await self._read(rejection_ledger.get_rejection, self.db, event_id, user_id)
        if record is None:
            return RejectionCheck(is_rejected=False)
        return RejectionCheck(is_rejected=True, reason=record.reason, rejected_at=record.created_at)

    async def list_participants(
        self,
        event_id: int,
        actor: Actor,
        query: Optional[ParticipantQuery] = None,
    ) -> list[tuple[Participation, User]]:
        require_capability(actor, Capability.MANAGE_PARTICIPANTS)
        await self._read(self._get_event, event_id)
        return await self._read(registry.list_participants, self.db, event_id, query)
