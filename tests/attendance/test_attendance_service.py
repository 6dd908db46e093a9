from __future__ import annotations

import threading

import pytest

from attendance_tracker.attendance.memory_store import InMemoryAttendanceStore
from attendance_tracker.attendance.model import AttendanceRecord
from attendance_tracker.attendance.service import AttendanceService
from attendance_tracker.core.enums import AttendanceStatus, TransitionOutcome
from attendance_tracker.core.exceptions import MissingIdentifierError, StoreUnavailableError


class RacingStore(InMemoryAttendanceStore):
    """A second device clocks the same user in between the two guard checks."""

    def __init__(self):
        super().__init__()
        self.queries = 0

    def query_active_by_user(self, user_id):
        self.queries += 1
        if self.queries == 2:
            self.create(
                AttendanceRecord(
                    user_id=user_id,
                    name="Ana Cruz",
                    department="GIS",
                    date="01/01/2024",
                    clock_in="01/01/2024, 08:59:59 AM",
                )
            )
        return super().query_active_by_user(user_id)


class FlakyStore(InMemoryAttendanceStore):
    def __init__(self):
        super().__init__()
        self.fail_updates = False
        self.fail_queries = False

    def update(self, record_id, changes, **kwargs):
        if self.fail_updates:
            raise ConnectionError("connection reset")
        super().update(record_id, changes, **kwargs)

    def query_active_by_user(self, user_id):
        if self.fail_queries:
            raise TimeoutError("store timed out")
        return super().query_active_by_user(user_id)


def test_end_to_end_shift(service, profile, clock, store):
    result = service.clock_in(profile)
    assert result.outcome == TransitionOutcome.APPLIED
    assert result.record.has_identifier()

    clock.advance(hours=1)
    assert service.start_break(profile.uid).record.status == AttendanceStatus.ON_BREAK
    clock.advance(minutes=15)
    assert service.end_break(profile.uid).record.status == AttendanceStatus.CLOCKED_IN
    clock.advance(hours=7, minutes=45)
    out = service.clock_out(profile.uid)

    assert out.outcome == TransitionOutcome.APPLIED
    stored = store.get(result.record.id)
    assert stored == out.record
    assert stored.status == AttendanceStatus.CLOCKED_OUT
    assert stored.clock_out == "01/01/2024, 06:00:00 PM"
    assert stored.total_hours == 9.00
    assert stored.break_hours == 0.25
    assert stored.lunch_hours == 0
    assert stored.date == "01/01/2024"


def test_no_double_clock_in(service, profile, store):
    first = service.clock_in(profile)
    second = service.clock_in(profile)
    third = service.clock_in(profile)

    assert first.outcome == TransitionOutcome.APPLIED
    assert second.outcome == third.outcome == TransitionOutcome.RESUMED
    assert second.record.id == first.record.id
    assert len(store.list_for_user(profile.uid)) == 1


def test_known_active_view_short_circuits_clock_in(service, profile, store):
    first = service.clock_in(profile).record
    result = service.clock_in(profile, known_active=first)
    assert result.outcome == TransitionOutcome.RESUMED
    assert len(store.list_for_user(profile.uid)) == 1


def test_write_time_recheck_resumes_racing_session(clock, profile):
    store = RacingStore()
    service = AttendanceService(store, clock)

    result = service.clock_in(profile)

    assert result.outcome == TransitionOutcome.RESUMED
    assert result.record.clock_in == "01/01/2024, 08:59:59 AM"
    assert len(store.list_for_user(profile.uid)) == 1


def test_clock_in_after_clock_out_opens_new_shift(service, profile, clock, store):
    service.clock_in(profile)
    clock.advance(hours=8)
    service.clock_out(profile.uid)
    clock.advance(hours=16)
    again = service.clock_in(profile)
    assert again.outcome == TransitionOutcome.APPLIED
    assert again.record.date == "01/02/2024"
    assert len(store.list_for_user(profile.uid)) == 2


def test_illegal_transitions_are_suppressed(service, profile, store):
    record = service.clock_in(profile).record
    service.start_lunch(profile.uid)

    result = service.start_break(profile.uid)
    assert result.outcome == TransitionOutcome.UNCHANGED
    assert result.record.status == AttendanceStatus.ON_LUNCH

    assert service.end_break(profile.uid).outcome == TransitionOutcome.UNCHANGED
    assert store.get(record.id).break_start is None


def test_stale_view_cannot_start_break_during_lunch(service, profile, store):
    view = service.clock_in(profile).record
    service.start_lunch(profile.uid)

    result = service.start_break(profile.uid, active=view)

    assert result.outcome == TransitionOutcome.UNCHANGED
    assert result.record.status == AttendanceStatus.ON_LUNCH
    stored = store.get(view.id)
    assert stored.status == AttendanceStatus.ON_LUNCH
    assert stored.break_start is None


def test_stale_view_cannot_end_lunch_that_already_ended(service, profile, clock, store):
    service.clock_in(profile)
    clock.advance(hours=3)
    on_lunch = service.start_lunch(profile.uid).record
    clock.advance(minutes=30)
    ended = service.end_lunch(profile.uid).record

    clock.advance(minutes=30)
    result = service.end_lunch(profile.uid, active=on_lunch)

    assert result.outcome == TransitionOutcome.UNCHANGED
    assert store.get(on_lunch.id).lunch_end == ended.lunch_end


def test_stale_view_cannot_end_break_after_clock_out(service, profile, clock, store):
    service.clock_in(profile)
    clock.advance(hours=1)
    on_break = service.start_break(profile.uid).record
    clock.advance(hours=1)
    out = service.clock_out(profile.uid).record

    result = service.end_break(profile.uid, active=on_break)

    assert result.outcome == TransitionOutcome.UNCHANGED
    assert result.record.status == AttendanceStatus.CLOCKED_OUT
    assert store.get(on_break.id) == out


def test_duplicate_clock_out_through_stale_view_is_unchanged(service, profile, clock, store):
    view = service.clock_in(profile).record
    clock.advance(hours=8)
    first = service.clock_out(profile.uid, active=view).record

    clock.advance(hours=2)
    again = service.clock_out(profile.uid, active=view)

    assert again.outcome == TransitionOutcome.UNCHANGED
    assert store.get(view.id) == first
    assert store.get(view.id).total_hours == 8.0


def test_stale_known_active_does_not_resume_closed_shift(service, profile, clock, store):
    stale = service.clock_in(profile).record
    clock.advance(hours=8)
    service.clock_out(profile.uid)

    clock.advance(hours=1)
    result = service.clock_in(profile, known_active=stale)

    assert result.outcome == TransitionOutcome.APPLIED
    assert result.record.id != stale.id
    assert len(store.list_for_user(profile.uid)) == 2


def test_status_change_between_read_and_write_is_unchanged(clock, profile):
    class OtherDeviceStore(InMemoryAttendanceStore):
        """Another device starts lunch just before this device's write lands."""

        armed = False

        def update(self, record_id, changes, **kwargs):
            if self.armed:
                self.armed = False
                super().update(record_id, {"lunch_start": "01/01/2024, 12:00:00 PM", "status": AttendanceStatus.ON_LUNCH})
            super().update(record_id, changes, **kwargs)

    store = OtherDeviceStore()
    service = AttendanceService(store, clock)
    record = service.clock_in(profile).record

    store.armed = True
    result = service.start_break(profile.uid)

    assert result.outcome == TransitionOutcome.UNCHANGED
    assert result.record.status == AttendanceStatus.ON_LUNCH
    assert store.get(record.id).break_start is None


def test_transition_without_active_record_is_unchanged(service, profile):
    result = service.start_break(profile.uid)
    assert result.outcome == TransitionOutcome.UNCHANGED
    assert result.record is None


def test_lunch_round_trip_returns_to_clocked_in(service, profile, clock):
    service.clock_in(profile)
    clock.advance(hours=3)
    service.start_lunch(profile.uid)
    clock.advance(minutes=30)
    ended = service.end_lunch(profile.uid).record
    assert ended.status == AttendanceStatus.CLOCKED_IN
    clock.advance(hours=5)
    out = service.clock_out(profile.uid).record
    assert out.lunch_hours == 0.5
    assert out.break_hours == 0


def test_clock_out_on_break_counts_zero_break_hours(service, profile, clock):
    service.clock_in(profile)
    clock.advance(hours=4)
    service.start_break(profile.uid)
    clock.advance(minutes=20)
    out = service.clock_out(profile.uid).record
    assert out.break_hours == 0
    assert out.break_end is None
    assert out.total_hours == 4.33


def test_clock_out_without_identifier_is_a_hard_failure(service, profile, clock):
    unsaved = AttendanceRecord(
        user_id=profile.uid,
        name=profile.full_name,
        department=profile.department,
        date=clock.today(),
        clock_in=clock.now(),
    )
    with pytest.raises(MissingIdentifierError):
        service.clock_out(profile.uid, active=unsaved)


def test_terminal_record_is_immutable(service, profile, clock, store):
    record_id = service.clock_in(profile).record.id
    clock.advance(hours=8)
    first = service.clock_out(profile.uid).record

    clock.advance(hours=1)
    assert service.clock_out(profile.uid).outcome == TransitionOutcome.UNCHANGED
    assert service.clock_out(profile.uid, active=first).outcome == TransitionOutcome.UNCHANGED
    assert service.force_clock_out(first).outcome == TransitionOutcome.UNCHANGED

    stored = store.get(record_id)
    assert (stored.clock_out, stored.total_hours, stored.break_hours, stored.lunch_hours) == (
        first.clock_out,
        first.total_hours,
        first.break_hours,
        first.lunch_hours,
    )


def test_force_clock_out_matches_normal_clock_out(service, profile, clock, store):
    record = service.clock_in(profile).record
    clock.advance(hours=2)
    service.start_lunch(profile.uid)
    clock.advance(hours=1)

    result = service.force_clock_out_by_id(record.id, actor="admin-1")

    assert result.outcome == TransitionOutcome.APPLIED
    stored = store.get(record.id)
    assert stored.status == AttendanceStatus.CLOCKED_OUT
    assert stored.total_hours == 3.0
    assert stored.lunch_hours == 0
    assert stored.break_hours == 0


def test_force_clock_out_by_empty_id_raises(service):
    with pytest.raises(MissingIdentifierError):
        service.force_clock_out_by_id(" ")


def test_store_failure_leaves_record_untouched(clock, profile):
    store = FlakyStore()
    service = AttendanceService(store, clock)
    record = service.clock_in(profile).record

    store.fail_updates = True
    with pytest.raises(StoreUnavailableError):
        service.start_break(profile.uid)
    assert store.get(record.id) == record

    store.fail_updates = False
    assert service.start_break(profile.uid).outcome == TransitionOutcome.APPLIED


def test_store_failure_on_clock_in_guard(clock, profile):
    store = FlakyStore()
    store.fail_queries = True
    service = AttendanceService(store, clock)
    with pytest.raises(StoreUnavailableError):
        service.clock_in(profile)
    assert store.list_all() == []


def test_concurrent_action_for_same_user_is_refused(clock, profile):
    gate = threading.Event()
    release = threading.Event()

    class SlowStore(InMemoryAttendanceStore):
        def update(self, record_id, changes, **kwargs):
            gate.set()
            release.wait(timeout=5)
            super().update(record_id, changes, **kwargs)

    store = SlowStore()
    service = AttendanceService(store, clock)
    service.clock_in(profile)

    results = []
    worker = threading.Thread(target=lambda: results.append(service.start_break(profile.uid)))
    worker.start()
    assert gate.wait(timeout=5)

    busy = service.start_lunch(profile.uid)
    release.set()
    worker.join(timeout=5)

    assert busy.outcome == TransitionOutcome.UNCHANGED
    assert results[0].outcome == TransitionOutcome.APPLIED
    assert store.query_active_by_user(profile.uid).status == AttendanceStatus.ON_BREAK


def test_clear_all(service, profile, store):
    service.clock_in(profile)
    assert service.clear_all() == 1
    assert store.list_all() == []
    assert service.get_active(profile.uid) is None
