from __future__ import annotations

from functools import wraps
from typing import Optional

import structlog
from flask import Flask, jsonify, request, session

from ..container import Container
from ..core.enums import AttendanceAction, Role, TransitionOutcome
from ..core.exceptions import (
    AuthorizationError,
    MissingIdentifierError,
    RecordNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from ..reports.service import RecordFilter
from ..users.model import Identity
from .model import AttendanceRecord
from .service import TransitionResult
from .state_machine import allowed_actions

logger = structlog.get_logger(__name__)


def record_to_json(record: Optional[AttendanceRecord]) -> Optional[dict]:
    if record is None:
        return None
    return {"id": record.id, **record.to_document()}


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if not session.get("user_id"):
                return jsonify({"success": False, "message": "Please sign in to continue"}), 401
            return view(*args, **kwargs)

        return wrapper

    def admin_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if not session.get("user_id"):
                return jsonify({"success": False, "message": "Please sign in to continue"}), 401
            if session.get("role") != Role.ADMIN.value:
                return _error(AuthorizationError("Admin access required"))
            return view(*args, **kwargs)

        return wrapper

    def _error(exc: Exception):
        if isinstance(exc, MissingIdentifierError):
            return jsonify({"success": False, "message": str(exc), "reauthenticate": True}), 400
        if isinstance(exc, RecordNotFoundError):
            return jsonify({"success": False, "message": str(exc)}), 404
        if isinstance(exc, StoreUnavailableError):
            return jsonify({"success": False, "message": "Attendance service is unavailable. Please try again."}), 503
        if isinstance(exc, AuthorizationError):
            return jsonify({"success": False, "message": str(exc)}), 403
        if isinstance(exc, ValidationError):
            return jsonify({"success": False, "message": str(exc)}), 400
        raise exc

    def _result_response(result: TransitionResult):
        status_code = 409 if result.outcome == TransitionOutcome.UNCHANGED else 200
        current = result.record if result.record is not None and result.record.is_active() else None
        return (
            jsonify(
                {
                    "success": result.outcome != TransitionOutcome.UNCHANGED,
                    "outcome": result.outcome.value,
                    "message": result.message,
                    "record": record_to_json(result.record),
                    "allowed_actions": [a.value for a in allowed_actions(current.status if current else None)],
                }
            ),
            status_code,
        )

    def _current_identity() -> Identity:
        return Identity(
            uid=str(session["user_id"]),
            email=session.get("email", ""),
            display_name=session.get("name"),
        )

    @app.route("/api/attendance/active", methods=["GET"], endpoint="attendance_active")
    @login_required
    def attendance_active():
        user_id = str(session["user_id"])
        try:
            records = service.records_for(user_id)
            active = service.resolve_for(user_id)
        except (StoreUnavailableError, ValidationError) as e:
            return _error(e)
        return jsonify(
            {
                "active": record_to_json(active),
                "allowed_actions": [a.value for a in allowed_actions(active.status if active else None)],
                "records": [record_to_json(r) for r in records],
            }
        )

    @app.route("/api/attendance/clock-in", methods=["POST"], endpoint="attendance_clock_in")
    @login_required
    def attendance_clock_in():
        try:
            profile = container.profile_service.resolve(_current_identity())
            result = service.clock_in(profile)
        except (StoreUnavailableError, ValidationError) as e:
            logger.warning("clock_in_failed", user_id=session.get("user_id"), error=str(e))
            return _error(e)
        return _result_response(result)

    def _transition_view(action: AttendanceAction):
        def view():
            try:
                result = service.transition(str(session["user_id"]), action)
            except (MissingIdentifierError, RecordNotFoundError, StoreUnavailableError, ValidationError) as e:
                logger.warning("transition_failed", user_id=session.get("user_id"), action=action.value, error=str(e))
                return _error(e)
            return _result_response(result)

        return view

    for path, action in (
        ("/api/attendance/break/start", AttendanceAction.BREAK_START),
        ("/api/attendance/break/end", AttendanceAction.BREAK_END),
        ("/api/attendance/lunch/start", AttendanceAction.LUNCH_START),
        ("/api/attendance/lunch/end", AttendanceAction.LUNCH_END),
        ("/api/attendance/clock-out", AttendanceAction.CLOCK_OUT),
    ):
        endpoint = "attendance_" + action.value.replace("-", "_")
        app.add_url_rule(path, endpoint=endpoint, view_func=login_required(_transition_view(action)), methods=["POST"])

    @app.route("/api/admin/attendance", methods=["GET"], endpoint="admin_attendance")
    @admin_required
    def admin_attendance():
        flt = RecordFilter(
            date=request.args.get("date") or None,
            name=request.args.get("name") or None,
            department=request.args.get("department") or None,
        )
        try:
            summary = container.summary_service.summarize(service.all_records(), flt)
        except (StoreUnavailableError, ValidationError) as e:
            return _error(e)
        return jsonify(
            {
                "total_hours": summary.total_hours,
                "active_employees": summary.active_employees,
                "unique_employees": summary.unique_employees,
                "records": [record_to_json(r) for r in summary.records],
            }
        )

    @app.route(
        "/api/admin/attendance/<record_id>/force-clock-out",
        methods=["POST"],
        endpoint="admin_force_clock_out",
    )
    @admin_required
    def admin_force_clock_out(record_id: str):
        try:
            result = service.force_clock_out_by_id(record_id, actor=str(session["user_id"]))
        except (MissingIdentifierError, RecordNotFoundError, StoreUnavailableError, ValidationError) as e:
            return _error(e)
        return _result_response(result)

    @app.route("/api/admin/attendance", methods=["DELETE"], endpoint="admin_clear_attendance")
    @admin_required
    def admin_clear_attendance():
        try:
            count = service.clear_all(actor=str(session["user_id"]))
        except StoreUnavailableError as e:
            return _error(e)
        return jsonify({"success": True, "deleted": count, "message": "All attendance records deleted"})
