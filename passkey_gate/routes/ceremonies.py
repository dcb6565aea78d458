"""Routes for the registration and authentication ceremonies."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..ceremonies import CeremonyOrchestrator

bp = Blueprint("ceremonies", __name__)

_NOT_FOUND_PAGE = "<h1>404 Not Found</h1><p>The requested route is not available.</p>"


def _orchestrator() -> CeremonyOrchestrator:
    return current_app.extensions["passkey_gate"].orchestrator


def _registration_disabled():
    if current_app.config.get("PASSKEY_REGISTRATION_ENABLED"):
        return None
    current_app.logger.info("Handling 404 when routes are disabled")
    return _NOT_FOUND_PAGE, 404, {"Content-Type": "text/html"}


@bp.route("/register/start", methods=["GET", "POST"])
def register_start():
    disabled = _registration_disabled()
    if disabled is not None:
        return disabled

    options = _orchestrator().begin_registration(
        request.args.get("invite"),
        request.args.get("user"),
    )
    return jsonify(options)


@bp.route("/register/finish", methods=["POST"])
def register_finish():
    disabled = _registration_disabled()
    if disabled is not None:
        return disabled

    result = _orchestrator().finish_registration(
        request.args.get("user"),
        request.get_json(silent=True),
    )
    return jsonify(result)


@bp.route("/login/start", methods=["GET", "POST"])
def login_start():
    options = _orchestrator().begin_authentication(request.args.get("user"))
    return jsonify(options)


@bp.route("/login/finish", methods=["POST"])
def login_finish():
    result = _orchestrator().finish_authentication(
        request.args.get("user"),
        request.get_json(silent=True),
        remote_address=request.remote_addr,
    )
    return jsonify(result)
