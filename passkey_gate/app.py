"""Application factory and command-line entry point for the passkey server."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from flask import Flask, current_app, jsonify

from .ceremonies import CeremonyOrchestrator
from .config import create_fido_server, load_config
from .engine import CeremonyEngine, Fido2CeremonyEngine
from .errors import CeremonyError
from .routes import ceremonies_bp, general_bp
from .sessions import CeremonySessionStore
from .storage import CredentialRepository

__all__ = ["PasskeyState", "create_app", "main"]


@dataclass
class PasskeyState:
    """Collaborators shared by every request handled by one application."""

    repository: CredentialRepository
    engine: CeremonyEngine
    sessions: CeremonySessionStore
    orchestrator: CeremonyOrchestrator


def _handle_ceremony_error(exc: CeremonyError):
    if exc.is_server_error:
        current_app.logger.error(
            "%s: %s", type(exc).__name__, exc.message, exc_info=exc.__cause__ or exc
        )
    return jsonify({"error": exc.message}), exc.status_code


def create_app(
    config: Optional[Mapping[str, Any]] = None,
    *,
    repository: Optional[CredentialRepository] = None,
    engine: Optional[CeremonyEngine] = None,
    session_store: Optional[CeremonySessionStore] = None,
) -> Flask:
    """Build a Flask app with its own session store, repository and engine."""

    app = Flask(__name__)
    load_config(app.config, config)

    if repository is None:
        repository = CredentialRepository(app.config["PASSKEY_DATABASE_PATH"])
    if engine is None:
        engine = Fido2CeremonyEngine(
            create_fido_server(
                rp_id=app.config["PASSKEY_RP_ID"],
                rp_name=app.config["PASSKEY_RP_NAME"],
                origins=app.config["PASSKEY_ORIGINS"],
            )
        )
    if session_store is None:
        session_store = CeremonySessionStore(ttl=app.config["PASSKEY_SESSION_TTL"])

    orchestrator = CeremonyOrchestrator(
        repository=repository,
        engine=engine,
        sessions=session_store,
        invite_token=app.config["PASSKEY_INVITE_TOKEN"],
    )
    app.extensions["passkey_gate"] = PasskeyState(
        repository=repository,
        engine=engine,
        sessions=session_store,
        orchestrator=orchestrator,
    )

    app.register_error_handler(CeremonyError, _handle_ceremony_error)
    app.register_blueprint(ceremonies_bp)
    app.register_blueprint(general_bp)
    return app


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Passwordless WebAuthn login server.")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--database", help="Path to the SQLite database file.")
    parser.add_argument(
        "--registration-on",
        action="store_true",
        default=None,
        help="Enable user registration endpoints.",
    )
    parser.add_argument("--debug", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging()

    overrides = {}
    if args.database:
        overrides["PASSKEY_DATABASE_PATH"] = args.database
    if args.registration_on:
        overrides["PASSKEY_REGISTRATION_ENABLED"] = True

    app = create_app(overrides)
    if app.config["PASSKEY_REGISTRATION_ENABLED"]:
        app.logger.info("Registration endpoints are enabled.")
    else:
        app.logger.info("Registration endpoints will serve 404 errors.")

    app.logger.info(
        "Listening on http://%s:%d (database %s)",
        args.host,
        args.port,
        os.path.abspath(app.config["PASSKEY_DATABASE_PATH"]),
    )
    # Plain HTTP on localhost; browsers allow WebAuthn there without TLS.
    app.run(host=args.host, port=args.port, debug=args.debug, threaded=True)
    return 0


if __name__ == "__main__":  # pragma: no cover - convenience script entry point.
    sys.exit(main())
