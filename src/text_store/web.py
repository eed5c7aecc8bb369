"""
REST interface for the text store.

Routes:
    GET    /api/text                      list texts (position, size, lang)
    POST   /api/text                      create a text
    GET    /api/text/<id>                 read a text
    PUT    /api/text/<id>                 update a text
    DELETE /api/text/<id>                 delete a text and its localized texts
    GET    /api/text/<id>/lang            list localized texts (position, size, lang)
    POST   /api/text/<id>/lang            create a localized text
    GET    /api/text/<id>/lang/<lid>      read a localized text
    PUT    /api/text/<id>/lang/<lid>      update a localized text
    DELETE /api/text/<id>/lang/<lid>      delete a localized text

Store errors are returned as {"error": {...}} with the status code of the
error class: 400 validation / client supplied id, 404 not found,
409 duplicate, 500 integrity fault.

Authentication (opt-in):
    Set TEXTSTORE_WEB_AUTH=user:pass. The user name becomes the actor
    stamped into createdBy/modifiedBy. Without it every request acts as the
    configured default actor.
"""

from __future__ import annotations

import functools
import logging
import os
import secrets
from typing import Any, Callable, Optional

from flask import Flask, Response, current_app, g, has_request_context, jsonify, request

from .config import Config
from .errors import TextStoreError, ValidationError
from .models import LocalizedEntry, TextRecord
from .store import DEFAULT_ACTOR, TextStore, open_store

logger = logging.getLogger(__name__)

API_PREFIX = "/api/text"


def get_auth_credentials() -> Optional[tuple[str, str]]:
    """
    Read configured credentials from TEXTSTORE_WEB_AUTH (user:pass).

    Credentials are never logged.
    """
    combined = os.environ.get("TEXTSTORE_WEB_AUTH", "").strip()
    if combined and ":" in combined:
        user, password = combined.split(":", 1)
        if user and password:
            return (user, password)
    return None


def check_auth(username: str, password: str) -> bool:
    """Verify credentials against configured auth using constant-time comparison."""
    creds = get_auth_credentials()
    if creds is None:
        return True

    expected_user, expected_pass = creds
    user_ok = secrets.compare_digest(username, expected_user)
    pass_ok = secrets.compare_digest(password, expected_pass)
    return user_ok and pass_ok


def requires_auth(f: Callable) -> Callable:
    """
    Decorator that requires HTTP Basic Auth if configured.

    If auth is configured but credentials are wrong, returns 401.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if get_auth_credentials() is None:
            return f(*args, **kwargs)

        auth = request.authorization
        if not auth or not check_auth(auth.username or "", auth.password or ""):
            return Response(
                "Authentication required.\n"
                "Configure via TEXTSTORE_WEB_AUTH=user:pass.",
                401,
                {"WWW-Authenticate": 'Basic realm="Text Store"'},
            )
        g.actor = auth.username
        return f(*args, **kwargs)
    return decorated


def current_actor() -> str:
    """
    Identity of the caller of the current request.

    Outside a request this is the library default actor.
    """
    if not has_request_context():
        return DEFAULT_ACTOR
    return g.get("actor") or current_app.config.get("DEFAULT_ACTOR", DEFAULT_ACTOR)


def is_localhost(host: str) -> bool:
    return host in ("127.0.0.1", "localhost", "::1")


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _int_arg(name: str, default: Optional[int]) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Query parameter '{name}' must be an integer", context={name: raw})


def create_app(store: Optional[TextStore] = None, config: Optional[Config] = None) -> Flask:
    """
    Create the Flask application.

    Args:
        store: Store to serve. Built from the configuration when None.
        config: Configuration; defaults apply when None.
    """
    config = config or Config()
    if store is None:
        store = open_store(config, actor_provider=current_actor)

    app = Flask(__name__)
    app.config["DEFAULT_ACTOR"] = config.store.default_actor
    app.json.sort_keys = False
    app.extensions["text_store"] = store

    @app.errorhandler(TextStoreError)
    def handle_store_error(error: TextStoreError):
        if error.http_status >= 500:
            logger.error(f"{request.method} {request.path} failed: {error.message}")
        else:
            logger.info(f"{request.method} {request.path} -> {error.http_status}: {error.message}")
        return jsonify({"error": error.to_dict()}), error.http_status

    # -------------------------
    # Texts
    # -------------------------

    @app.route(API_PREFIX, methods=["GET"])
    @requires_auth
    def list_texts():
        texts = store.list(
            language=request.args.get("lang"),
            offset=_int_arg("position", 0),
            limit=_int_arg("size", None),
        )
        return jsonify([text.to_dict() for text in texts])

    @app.route(API_PREFIX, methods=["POST"])
    @requires_auth
    def create_text():
        text = store.create(TextRecord.from_dict(_json_body()))
        return jsonify(text.to_dict()), 201

    @app.route(f"{API_PREFIX}/<text_id>", methods=["GET"])
    @requires_auth
    def read_text(text_id: str):
        return jsonify(store.read(text_id).to_dict())

    @app.route(f"{API_PREFIX}/<text_id>", methods=["PUT"])
    @requires_auth
    def update_text(text_id: str):
        text = store.update(text_id, TextRecord.from_dict(_json_body()))
        return jsonify(text.to_dict())

    @app.route(f"{API_PREFIX}/<text_id>", methods=["DELETE"])
    @requires_auth
    def delete_text(text_id: str):
        store.delete(text_id)
        return "", 204

    # -------------------------
    # Localized texts
    # -------------------------

    @app.route(f"{API_PREFIX}/<text_id>/lang", methods=["GET"])
    @requires_auth
    def list_localized_texts(text_id: str):
        entries = store.list_entries(
            text_id,
            language=request.args.get("lang"),
            offset=_int_arg("position", 0),
            limit=_int_arg("size", None),
        )
        return jsonify([entry.to_dict() for entry in entries])

    @app.route(f"{API_PREFIX}/<text_id>/lang", methods=["POST"])
    @requires_auth
    def create_localized_text(text_id: str):
        entry = store.create_entry(text_id, LocalizedEntry.from_dict(_json_body()))
        return jsonify(entry.to_dict()), 201

    @app.route(f"{API_PREFIX}/<text_id>/lang/<entry_id>", methods=["GET"])
    @requires_auth
    def read_localized_text(text_id: str, entry_id: str):
        return jsonify(store.read_entry(text_id, entry_id).to_dict())

    @app.route(f"{API_PREFIX}/<text_id>/lang/<entry_id>", methods=["PUT"])
    @requires_auth
    def update_localized_text(text_id: str, entry_id: str):
        entry = store.update_entry(text_id, entry_id, LocalizedEntry.from_dict(_json_body()))
        return jsonify(entry.to_dict())

    @app.route(f"{API_PREFIX}/<text_id>/lang/<entry_id>", methods=["DELETE"])
    @requires_auth
    def delete_localized_text(text_id: str, entry_id: str):
        store.delete_entry(text_id, entry_id)
        return "", 204

    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    debug: bool = False,
    config: Optional[Config] = None,
    allow_unsafe_bind: bool = False,
) -> None:
    """
    Run the web server.

    Args:
        host: Host to bind to. Defaults to 127.0.0.1 (localhost only).
        port: Port to listen on.
        debug: Enable Flask debug mode.
        config: Configuration used to open the store.
        allow_unsafe_bind: If True, allow binding to non-localhost addresses.
    """
    if not is_localhost(host) and not allow_unsafe_bind:
        logger.error(
            f"Refusing to bind to '{host}': the server would be reachable from other "
            "machines. Pass --i-know-what-im-doing to proceed."
        )
        raise SystemExit(1)

    if get_auth_credentials() is not None:
        logger.info("Authentication is ENABLED")
    else:
        logger.info("Authentication is DISABLED (set TEXTSTORE_WEB_AUTH to enable)")

    app = create_app(config=config)
    logger.info(f"Starting text store at http://{host}:{port}{API_PREFIX}")
    # threaded=True: handlers run concurrently against the shared store
    app.run(host=host, port=port, debug=debug, threaded=True)
