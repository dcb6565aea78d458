"""Service status routes."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("general", __name__)


@bp.route("/check-registration", methods=["GET"])
def check_registration():
    enabled = bool(current_app.config.get("PASSKEY_REGISTRATION_ENABLED"))
    return jsonify({"registrationEnabled": enabled})


@bp.route("/api/health", methods=["GET"])
def health_check():
    state = current_app.extensions["passkey_gate"]
    return jsonify({
        "status": "healthy",
        "pendingCeremonies": len(state.sessions),
    })
