from __future__ import annotations

import io
import json
import logging

import qrcode
from flask import Flask, jsonify, request, send_file

from ..common.datetime_utils import parse_hhmm, parse_iso_date
from ..common.validators import require_positive_id
from ..common.web import api_login_required, api_roles_required, current_role, current_user_id, json_error
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, NotFoundError, SessionOverlapError, ValidationError

logger = logging.getLogger(__name__)


def render_session_qr(session_id: int, token: str) -> io.BytesIO:
    """PNG QR code carrying the payload students submit to /api/attendance/verify."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(json.dumps({"session_id": session_id, "token": token}))
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return buf


def register(app: Flask, container: Container) -> None:
    @app.route("/api/me/sessions", methods=["GET"], endpoint="api_my_sessions")
    @api_login_required
    def api_my_sessions():
        user_id = current_user_id()
        role = current_role()

        if role == Role.STUDENT:
            buckets = container.query_service.sessions_by_status_for_student(user_id)
            summary = container.query_service.attendance_summary(user_id)
            return jsonify({
                "success": True,
                "data": buckets.to_dict(),
                "needing_attention": [v.session.session_id for v in buckets.needing_attention],
                "summary": summary.to_dict(),
            })

        if role == Role.DELEGATE:
            buckets = container.query_service.sessions_by_status_for_delegate(user_id)
            return jsonify({"success": True, "data": buckets.to_dict()})

        # Admins own no classes; they reach sessions through the per-session routes.
        return json_error("No personal sessions for this role", 403)

    @app.route("/api/sessions", methods=["POST"], endpoint="api_create_session")
    @api_roles_required(Role.DELEGATE)
    def api_create_session():
        """Body: {"course_id", "date": YYYY-MM-DD, "start_time": HH:MM, "end_time": HH:MM}"""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        try:
            course_id = require_positive_id(data.get("course_id"), "course_id")
            created = container.session_service.create_session_for_course(
                delegate_id=current_user_id(),
                course_id=course_id,
                session_date=parse_iso_date(data.get("date", "")),
                start_time=parse_hhmm(data.get("start_time", "")),
                end_time=parse_hhmm(data.get("end_time", "")),
            )
        except SessionOverlapError as e:
            return json_error(
                str(e),
                400,
                conflicting=[
                    {
                        "id": s.session_id,
                        "start_time": s.start_time.strftime("%H:%M"),
                        "end_time": s.end_time.strftime("%H:%M"),
                    }
                    for s in e.conflicting
                ],
            )
        except ValidationError as e:
            return json_error(str(e), 400)
        except AuthorizationError as e:
            return json_error(str(e), 403)
        except NotFoundError as e:
            return json_error(str(e), 404)

        return jsonify({
            "success": True,
            "message": "Session created",
            "data": {
                "id": created.session_id,
                "class_id": created.class_id,
                "course_id": created.course_id,
                "date": created.session_date.isoformat(),
                "start_time": created.start_time.strftime("%H:%M"),
                "end_time": created.end_time.strftime("%H:%M"),
                "token": created.token,
                "expires_at": created.expires_at.isoformat(),
            },
        }), 201

    @app.route("/api/sessions/<int:session_id>/close", methods=["POST"], endpoint="api_close_session")
    @api_roles_required(Role.DELEGATE, Role.ADMIN)
    def api_close_session(session_id: int):
        try:
            owned = container.session_service.get_owned_session(
                delegate_id=current_user_id(),
                session_id=session_id,
                current_role=current_role(),
            )
        except NotFoundError as e:
            return json_error(str(e), 404)
        except AuthorizationError as e:
            return json_error(str(e), 403)

        # Closing an open or scheduled session is a no-op, reported in data.processed.
        result = container.closure_service.process_closure(owned)
        return jsonify({
            "success": True,
            "message": result.message,
            "data": {
                "session_id": result.session_id,
                "processed": result.processed,
                "absent_count": result.absent_count,
            },
        })

    @app.route("/api/sessions/<int:session_id>/qr", methods=["GET"], endpoint="api_session_qr")
    @api_roles_required(Role.DELEGATE)
    def api_session_qr(session_id: int):
        try:
            owned = container.session_service.get_owned_session(
                delegate_id=current_user_id(),
                session_id=session_id,
                current_role=Role.DELEGATE,
            )
        except NotFoundError as e:
            return json_error(str(e), 404)
        except AuthorizationError as e:
            return json_error(str(e), 403)

        return send_file(render_session_qr(owned.session_id, owned.token), mimetype="image/png")
