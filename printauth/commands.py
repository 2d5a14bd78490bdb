"""Command surface shared by the CLI and the web API.

Each command loads the settings afresh, builds its own clients, and returns a
JSON-serialisable payload. Failures surface as :class:`CommandError` carrying
the human-readable message only.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from . import bulk
from .api_client import PrintServiceClient, PrintServiceError
from .config import ConfigurationError, TenantSettings, load_settings, settings_to_dict
from .mail_relay import MailRelayError, send_graph_emails
from .models import PreparedEmailMessage, UserDetailType


NOT_CONFIGURED_MESSAGE = "Settings not configured"


class CommandError(RuntimeError):
    """A command failed; ``str(exc)`` is safe to show to the user."""


def _require_settings(settings_path: Optional[Path]) -> TenantSettings:
    try:
        settings = load_settings(settings_path)
    except ConfigurationError as exc:
        raise CommandError(f"failed to read settings: {exc}") from exc
    if settings is None:
        raise CommandError(NOT_CONFIGURED_MESSAGE)
    return settings


def _client(settings: TenantSettings) -> PrintServiceClient:
    try:
        return PrintServiceClient.from_settings(settings)
    except PrintServiceError as exc:
        raise CommandError(str(exc)) from exc


def _call(settings_path: Optional[Path], action) -> Any:
    settings = _require_settings(settings_path)
    with _client(settings) as client:
        try:
            return action(client, settings)
        except PrintServiceError as exc:
            raise CommandError(str(exc)) from exc


def _objects(items: Iterable[Any], label: str) -> List[Mapping[str, Any]]:
    objects = list(items)
    for index, item in enumerate(objects, start=1):
        if not isinstance(item, Mapping):
            raise CommandError(f"{label} #{index} must be an object")
    return objects


def get_settings(settings_path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    try:
        settings = load_settings(settings_path)
    except ConfigurationError as exc:
        raise CommandError(f"failed to read settings: {exc}") from exc
    return settings_to_dict(settings) if settings else None


def list_users(settings_path: Optional[Path] = None) -> Any:
    return _call(settings_path, lambda client, _: client.list_users())


def list_auth_providers(settings_path: Optional[Path] = None) -> Any:
    return _call(settings_path, lambda client, _: client.list_auth_providers())


def list_users_for_provider(provider_id: int, settings_path: Optional[Path] = None) -> Any:
    return _call(settings_path, lambda client, _: client.list_users_for_provider(provider_id))


def _update(
    detail_type: UserDetailType,
    username: str,
    provider_id: Optional[int],
    value: Optional[str],
    settings_path: Optional[Path],
) -> Any:
    return _call(
        settings_path,
        lambda client, _: client.update_user_detail(username, provider_id, detail_type, value),
    )


def update_user_card(
    username: str,
    provider_id: Optional[int] = None,
    card_id: Optional[str] = None,
    settings_path: Optional[Path] = None,
) -> Any:
    return _update(UserDetailType.CARD_ID, username, provider_id, card_id, settings_path)


def update_user_short_id(
    username: str,
    provider_id: Optional[int] = None,
    short_id: Optional[str] = None,
    settings_path: Optional[Path] = None,
) -> Any:
    # The short ID field is stored under the OTP detail type.
    return _update(UserDetailType.OTP, username, provider_id, short_id, settings_path)


def update_user_pin(
    username: str,
    provider_id: Optional[int] = None,
    pin: Optional[str] = None,
    settings_path: Optional[Path] = None,
) -> Any:
    return _update(UserDetailType.PIN, username, provider_id, pin, settings_path)


def generate_user_pin(
    username: str, provider_id: Optional[int] = None, settings_path: Optional[Path] = None
) -> Dict[str, str]:
    return _call(
        settings_path,
        lambda client, settings: client.generate_pin(username, provider_id, settings),
    )


def generate_user_otp(
    username: str, provider_id: Optional[int] = None, settings_path: Optional[Path] = None
) -> Dict[str, str]:
    return _call(
        settings_path,
        lambda client, settings: client.generate_otp(username, provider_id, settings),
    )


def generate_bulk_pins(
    users: Iterable[Mapping[str, Any]], settings_path: Optional[Path] = None
) -> Dict[str, Any]:
    settings = _require_settings(settings_path)
    with _client(settings) as client:
        return bulk.generate_bulk_pins(client, _objects(users, "User"), settings).to_dict()


def generate_bulk_otps(
    users: Iterable[Mapping[str, Any]], settings_path: Optional[Path] = None
) -> Dict[str, Any]:
    settings = _require_settings(settings_path)
    with _client(settings) as client:
        return bulk.generate_bulk_otps(client, _objects(users, "User"), settings).to_dict()


def create_users(
    users: Iterable[Mapping[str, Any]],
    auto_generate_pin: bool = False,
    auto_generate_otp: bool = False,
    settings_path: Optional[Path] = None,
    default_provider_id: Optional[int] = None,
) -> Dict[str, Any]:
    entries = _objects(users, "User")
    settings = _require_settings(settings_path)
    with _client(settings) as client:
        result = bulk.create_users(
            client,
            entries,
            settings,
            auto_generate_pin=auto_generate_pin,
            auto_generate_otp=auto_generate_otp,
            default_provider_id=default_provider_id,
        )
    return result.to_dict()


def send_emails(
    messages: Iterable[Mapping[str, Any]], settings_path: Optional[Path] = None
) -> Dict[str, Any]:
    settings = _require_settings(settings_path)
    try:
        prepared: List[PreparedEmailMessage] = [
            PreparedEmailMessage.from_dict(message) for message in _objects(messages, "Message")
        ]
    except ValueError as exc:
        raise CommandError(str(exc)) from exc

    try:
        summary = send_graph_emails(settings.email, prepared)
    except MailRelayError as exc:
        raise CommandError(str(exc)) from exc
    return summary.to_dict()


__all__ = [
    "CommandError",
    "create_users",
    "generate_bulk_otps",
    "generate_bulk_pins",
    "generate_user_otp",
    "generate_user_pin",
    "get_settings",
    "list_auth_providers",
    "list_users",
    "list_users_for_provider",
    "send_emails",
    "update_user_card",
    "update_user_pin",
    "update_user_short_id",
]
