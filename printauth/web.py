"""Flask JSON API exposing the credential commands to a browser front end."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from flask import Flask, current_app, jsonify, request

from . import commands


def create_app(settings_path: Optional[Path | str] = None) -> Flask:
    """Create and configure the Flask application."""

    app = Flask(__name__)
    app.config["SETTINGS_PATH"] = Path(settings_path) if settings_path else None
    app.json.sort_keys = False

    register_routes(app)
    return app


def _settings_path() -> Optional[Path]:
    return current_app.config.get("SETTINGS_PATH")


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _optional_provider(payload: Dict[str, Any], key: str = "providerId") -> Optional[int]:
    raw = payload.get(key)
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise ValueError(f"{key} must be an integer.")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be an integer.") from exc


def _bool_field(payload: Dict[str, Any], key: str) -> bool:
    raw = payload.get(key, False)
    if raw is None:
        return False
    if not isinstance(raw, bool):
        raise ValueError(f"{key} must be true or false.")
    return raw


def _list_field(payload: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    items = payload.get(key)
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise ValueError(f"'{key}' must be a list of objects.")
    return items


def _respond(action: Callable[[], Any]) -> Any:
    try:
        return jsonify(action())
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except commands.CommandError as exc:
        current_app.logger.warning("Command failed on %s: %s", request.path, exc)
        return jsonify({"error": str(exc)}), 400


def register_routes(app: Flask) -> None:
    """Attach all API routes to the provided Flask app."""

    @app.get("/api/settings")
    def api_settings() -> Any:
        return _respond(lambda: {"settings": commands.get_settings(_settings_path())})

    @app.get("/api/users")
    def api_users() -> Any:
        return _respond(lambda: commands.list_users(_settings_path()))

    @app.get("/api/auth-providers")
    def api_auth_providers() -> Any:
        return _respond(lambda: commands.list_auth_providers(_settings_path()))

    @app.get("/api/auth-providers/<int:provider_id>/users")
    def api_provider_users(provider_id: int) -> Any:
        return _respond(lambda: commands.list_users_for_provider(provider_id, _settings_path()))

    _updates = {
        "card": "update_user_card",
        "short-id": "update_user_short_id",
        "pin": "update_user_pin",
    }

    @app.put("/api/users/<username>/<detail>")
    def api_update_detail(username: str, detail: str) -> Any:
        command_name = _updates.get(detail)
        if command_name is None:
            return jsonify({"error": f"Unknown user detail '{detail}'."}), 404
        handler = getattr(commands, command_name)
        payload = _json_body()

        def _action() -> Any:
            value = payload.get("value")
            return handler(
                username,
                _optional_provider(payload),
                None if value is None else str(value),
                settings_path=_settings_path(),
            )

        return _respond(_action)

    @app.post("/api/users/<username>/pin/generate")
    def api_generate_pin(username: str) -> Any:
        payload = _json_body()
        return _respond(
            lambda: commands.generate_user_pin(
                username, _optional_provider(payload), _settings_path()
            )
        )

    @app.post("/api/users/<username>/otp/generate")
    def api_generate_otp(username: str) -> Any:
        payload = _json_body()
        return _respond(
            lambda: commands.generate_user_otp(
                username, _optional_provider(payload), _settings_path()
            )
        )

    @app.post("/api/bulk/pins")
    def api_bulk_pins() -> Any:
        payload = _json_body()
        return _respond(
            lambda: commands.generate_bulk_pins(_list_field(payload, "users"), _settings_path())
        )

    @app.post("/api/bulk/otps")
    def api_bulk_otps() -> Any:
        payload = _json_body()
        return _respond(
            lambda: commands.generate_bulk_otps(_list_field(payload, "users"), _settings_path())
        )

    @app.post("/api/users")
    def api_create_users() -> Any:
        payload = _json_body()

        def _action() -> Any:
            result = commands.create_users(
                _list_field(payload, "users"),
                auto_generate_pin=_bool_field(payload, "autoGeneratePin"),
                auto_generate_otp=_bool_field(payload, "autoGenerateOtp"),
                settings_path=_settings_path(),
                default_provider_id=_optional_provider(payload, "defaultProviderId"),
            )
            app.logger.info(
                "Create users: success=%s failed=%s", result["success"], result["failed"]
            )
            return result

        return _respond(_action)

    @app.post("/api/emails")
    def api_send_emails() -> Any:
        payload = _json_body()
        return _respond(
            lambda: commands.send_emails(_list_field(payload, "messages"), _settings_path())
        )


def main() -> None:
    """Run the development server."""

    app = create_app()
    app.run(
        host=os.environ.get("PRINTAUTH_WEB_HOST", "127.0.0.1"),
        port=int(os.environ.get("PRINTAUTH_WEB_PORT", "5000")),
        debug=os.environ.get("PRINTAUTH_WEB_DEBUG") == "1",
    )


__all__ = ["create_app", "main", "register_routes"]


if __name__ == "__main__":
    main()
