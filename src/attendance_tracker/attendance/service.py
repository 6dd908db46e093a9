from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence, TypeVar

import structlog

from ..common.clock import Clock
from ..core.enums import AttendanceAction, TransitionOutcome
from ..core.exceptions import (
    DomainError,
    MissingIdentifierError,
    StaleRecordError,
    StoreUnavailableError,
    ValidationError,
)
from ..users.model import EmployeeProfile
from .model import AttendanceRecord
from .repository import AttendanceStore
from .resolver import resolve_active
from .state_machine import AttendanceStateMachine

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MSG_RESUMED = "You are already clocked in! Your session continues from your previous clock-in."
MSG_BUSY = "Another action is in progress"
MSG_NO_ACTIVE = "You are not clocked in"
MSG_NOT_FOUND = "Attendance record not found"

_APPLIED_MESSAGES = {
    AttendanceAction.CLOCK_IN: "Clocked in",
    AttendanceAction.BREAK_START: "Break started",
    AttendanceAction.BREAK_END: "Break ended",
    AttendanceAction.LUNCH_START: "Lunch started",
    AttendanceAction.LUNCH_END: "Lunch ended",
    AttendanceAction.CLOCK_OUT: "Clocked out",
}


@dataclass(frozen=True)
class TransitionResult:
    outcome: TransitionOutcome
    record: Optional[AttendanceRecord]
    message: str = ""


class AttendanceService:
    """Applies attendance transitions against the record store.

    Guard failures come back as UNCHANGED results rather than exceptions.
    Store failures surface as StoreUnavailableError with nothing written.
    """

    def __init__(self, store: AttendanceStore, clock: Clock, *, machine: Optional[AttendanceStateMachine] = None):
        self._store = store
        self._clock = clock
        self._machine = machine or AttendanceStateMachine(clock)
        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()

    # --- queries ---------------------------------------------------------

    def get_active(self, user_id: str) -> Optional[AttendanceRecord]:
        return self._call_store("query_active", lambda: self._store.query_active_by_user(user_id))

    def records_for(self, user_id: str) -> Sequence[AttendanceRecord]:
        return self._call_store("list_for_user", lambda: self._store.list_for_user(user_id))

    def resolve_for(self, user_id: str) -> Optional[AttendanceRecord]:
        """Active record as the change feed would resolve it."""
        return resolve_active(self.records_for(user_id))

    def all_records(self) -> Sequence[AttendanceRecord]:
        return self._call_store("list_all", self._store.list_all)

    # --- employee actions ------------------------------------------------

    def clock_in(self, profile: EmployeeProfile, *, known_active: Optional[AttendanceRecord] = None) -> TransitionResult:
        """Open a new shift unless the user already has an active one.

        `known_active` is the observer's current view. It is confirmed against
        the store before resuming, and the store is re-checked right before the
        write either way.
        """
        with self._single_flight(profile.uid) as acquired:
            if not acquired:
                return TransitionResult(TransitionOutcome.UNCHANGED, known_active, MSG_BUSY)

            if known_active is not None and known_active.is_active() and known_active.has_identifier():
                stored = self._call_store("get", lambda: self._store.get(known_active.id))
                if stored is not None and stored.is_active():
                    return self._resume(stored)

            existing = self.get_active(profile.uid)
            if existing is not None:
                return self._resume(existing)

            record = self._machine.open_shift(
                user_id=profile.uid,
                name=profile.full_name,
                department=profile.department,
            )

            existing = self.get_active(profile.uid)
            if existing is not None:
                return self._resume(existing)

            record_id = self._call_store("create", lambda: self._store.create(record))
            created = record.with_id(record_id)
            logger.info("clocked_in", user_id=profile.uid, record_id=record_id, date=created.date)
            return TransitionResult(TransitionOutcome.APPLIED, created, _APPLIED_MESSAGES[AttendanceAction.CLOCK_IN])

    def start_break(self, user_id: str, *, active: Optional[AttendanceRecord] = None) -> TransitionResult:
        return self.transition(user_id, AttendanceAction.BREAK_START, active=active)

    def end_break(self, user_id: str, *, active: Optional[AttendanceRecord] = None) -> TransitionResult:
        return self.transition(user_id, AttendanceAction.BREAK_END, active=active)

    def start_lunch(self, user_id: str, *, active: Optional[AttendanceRecord] = None) -> TransitionResult:
        return self.transition(user_id, AttendanceAction.LUNCH_START, active=active)

    def end_lunch(self, user_id: str, *, active: Optional[AttendanceRecord] = None) -> TransitionResult:
        return self.transition(user_id, AttendanceAction.LUNCH_END, active=active)

    def clock_out(self, user_id: str, *, active: Optional[AttendanceRecord] = None) -> TransitionResult:
        return self.transition(user_id, AttendanceAction.CLOCK_OUT, active=active)

    def transition(
        self,
        user_id: str,
        action: AttendanceAction,
        *,
        active: Optional[AttendanceRecord] = None,
    ) -> TransitionResult:
        """Apply an update transition to the user's active record.

        `active` is the caller's view of the record. It only identifies which
        record to act on: the guard always runs against the stored copy.
        """
        if action == AttendanceAction.CLOCK_IN:
            raise ValidationError("Use clock_in() to open a shift")

        with self._single_flight(user_id) as acquired:
            if not acquired:
                return TransitionResult(TransitionOutcome.UNCHANGED, active, MSG_BUSY)

            record = self._current(user_id, active)
            if record is None:
                return TransitionResult(TransitionOutcome.UNCHANGED, None, MSG_NO_ACTIVE)
            if record.user_id != user_id:
                raise ValidationError("Attendance record belongs to another user")

            return self._apply(record, action, actor=user_id)

    # --- admin actions ---------------------------------------------------

    def force_clock_out(self, record: AttendanceRecord, *, actor: str = "admin") -> TransitionResult:
        """Administrative clock-out with the same effect as a normal one."""
        if not record.has_identifier():
            raise MissingIdentifierError("Attendance record has no identifier")
        with self._single_flight(record.user_id) as acquired:
            if not acquired:
                return TransitionResult(TransitionOutcome.UNCHANGED, record, MSG_BUSY)
            fresh = self._call_store("get", lambda: self._store.get(record.id))
            if fresh is None:
                return TransitionResult(TransitionOutcome.UNCHANGED, None, MSG_NOT_FOUND)
            return self._apply(fresh, AttendanceAction.CLOCK_OUT, actor=actor)

    def force_clock_out_by_id(self, record_id: str, *, actor: str = "admin") -> TransitionResult:
        if not record_id or not record_id.strip():
            raise MissingIdentifierError("Attendance record has no identifier")
        record = self._call_store("get", lambda: self._store.get(record_id))
        if record is None:
            return TransitionResult(TransitionOutcome.UNCHANGED, None, MSG_NOT_FOUND)
        return self.force_clock_out(record, actor=actor)

    def clear_all(self, *, actor: str = "admin") -> int:
        count = self._call_store("delete_all", self._store.delete_all)
        logger.warning("attendance_cleared", actor=actor, count=count)
        return count

    # --- internals -------------------------------------------------------

    def _current(self, user_id: str, view: Optional[AttendanceRecord]) -> Optional[AttendanceRecord]:
        """Stored copy of the record the caller means to act on."""
        if view is None:
            return self.get_active(user_id)
        if view.has_identifier():
            return self._call_store("get", lambda: self._store.get(view.id))
        found = self.get_active(user_id)
        if found is None:
            logger.error("transition_missing_identifier", user_id=user_id)
            raise MissingIdentifierError(
                "Unable to update attendance: the session has no record identifier. "
                "Please sign in again or contact support."
            )
        return found

    def _apply(self, record: AttendanceRecord, action: AttendanceAction, *, actor: str) -> TransitionResult:
        changes = self._machine.changes_for(record, action)
        if changes is None:
            return self._ignored(record, action)

        try:
            self._call_store(
                "update",
                lambda: self._store.update(record.id, changes, expected_status=record.status),
            )
        except StaleRecordError:
            latest = self._call_store("get", lambda: self._store.get(record.id))
            logger.warning(
                "transition_lost_race",
                user_id=record.user_id,
                record_id=record.id,
                action=action.value,
                expected=record.status.value,
            )
            return self._ignored(latest or record, action)

        updated = record.apply(changes)
        logger.info(
            "transition_applied",
            user_id=record.user_id,
            record_id=record.id,
            action=action.value,
            status=updated.status.value,
            actor=actor,
        )
        return TransitionResult(TransitionOutcome.APPLIED, updated, _APPLIED_MESSAGES[action])

    def _ignored(self, record: AttendanceRecord, action: AttendanceAction) -> TransitionResult:
        logger.info(
            "transition_ignored",
            user_id=record.user_id,
            record_id=record.id,
            action=action.value,
            status=record.status.value,
        )
        return TransitionResult(
            TransitionOutcome.UNCHANGED,
            record,
            f"Cannot {action.value.replace('-', ' ')} while {record.status.value}",
        )

    def _resume(self, existing: AttendanceRecord) -> TransitionResult:
        logger.info("clock_in_resumed", user_id=existing.user_id, record_id=existing.id)
        return TransitionResult(TransitionOutcome.RESUMED, existing, MSG_RESUMED)

    @contextmanager
    def _single_flight(self, user_id: str) -> Iterator[bool]:
        with self._in_flight_lock:
            if user_id in self._in_flight:
                acquired = False
            else:
                self._in_flight.add(user_id)
                acquired = True
        try:
            yield acquired
        finally:
            if acquired:
                with self._in_flight_lock:
                    self._in_flight.discard(user_id)

    def _call_store(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except DomainError:
            raise
        except Exception as exc:
            logger.exception("store_call_failed", operation=operation)
            raise StoreUnavailableError(f"Attendance store unavailable during {operation}") from exc
