from __future__ import annotations

import logging

from flask import Flask, jsonify, request

from ..common.web import api_roles_required, current_role, current_user_id, json_error, optional_int
from ..container import Container
from ..core.enums import MarkErrorCode, Role
from ..core.exceptions import AuthorizationError, NotFoundError
from .model import MarkResult

logger = logging.getLogger(__name__)


def http_status_for(result: MarkResult) -> int:
    if result.success:
        return 200
    if result.code == MarkErrorCode.NOT_AUTHENTICATED:
        return 401
    if result.code == MarkErrorCode.INTERNAL_ERROR:
        return 500
    return 400


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/verify", methods=["POST"], endpoint="api_verify_attendance")
    def api_verify_attendance():
        """Token-gated attendance marking for the signed-in student.

        Body: {"session_id": int, "token": str}
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        try:
            result = container.attendance_service.verify_and_mark(
                session_id=optional_int(data.get("session_id")),
                token=str(data.get("token") or "").strip() or None,
                student_id=current_user_id(),
            )
        except Exception:
            logger.exception("Attendance verification failed")
            result = MarkResult.denied(MarkErrorCode.INTERNAL_ERROR, "Internal server error")

        return jsonify(result.to_envelope()), http_status_for(result)

    @app.route("/api/sessions/<int:session_id>/roster", methods=["GET"], endpoint="api_session_roster")
    @api_roles_required(Role.DELEGATE, Role.ADMIN)
    def api_session_roster(session_id: int):
        try:
            container.session_service.get_owned_session(
                delegate_id=current_user_id(),
                session_id=session_id,
                current_role=current_role(),
            )
            roster = container.query_service.session_roster(session_id)
        except NotFoundError as e:
            return json_error(str(e), 404)
        except AuthorizationError as e:
            return json_error(str(e), 403)

        return jsonify({"success": True, "data": roster.to_dict()})
