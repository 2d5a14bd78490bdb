"""Settings store access for the print credential manager."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .url_utils import normalize_tenant_url


DEFAULT_SETTINGS_PATH = Path("config/safeq-settings.json")
ENV_SETTINGS_PATH = "PRINTAUTH_SETTINGS"
SETTINGS_KEY = "safeqCredentials"

# Environment variable -> stored key (email keys live under ``emailSettings``).
_ENV_OVERRIDES = {
    "PRINTAUTH_TENANT_URL": ("tenantUrl",),
    "PRINTAUTH_API_KEY": ("apiKey",),
    "PRINTAUTH_PIN_LENGTH": ("pinLength",),
    "PRINTAUTH_SHORT_ID_LENGTH": ("shortIdLength",),
    "PRINTAUTH_EMAIL_METHOD": ("emailSettings", "method"),
    "PRINTAUTH_GRAPH_TENANT_ID": ("emailSettings", "graphTenantId"),
    "PRINTAUTH_GRAPH_CLIENT_ID": ("emailSettings", "graphClientId"),
    "PRINTAUTH_GRAPH_CLIENT_SECRET": ("emailSettings", "graphClientSecret"),
    "PRINTAUTH_GRAPH_SENDER_ADDRESS": ("emailSettings", "graphSenderAddress"),
}

DEFAULT_PIN_SUBJECT = "Your SAFEQ PIN"
DEFAULT_PIN_BODY = (
    "Hello {{fullName || userName}},\n\n"
    "Your new SAFEQ PIN is {{pin}}.\n"
    "Use this code to access printers that require a numeric PIN.\n\n"
    "Thanks,\nSAFEQ Cloud Administrator"
)
DEFAULT_OTP_SUBJECT = "Your SAFEQ OTP"
DEFAULT_OTP_BODY = (
    "Hello {{fullName || userName}},\n\n"
    "Your one-time password is {{otp}}.\n"
    "Enter this code when the portal or device asks for an OTP.\n\n"
    "Thanks,\nSAFEQ Cloud Administrator"
)


class ConfigurationError(RuntimeError):
    """Raised when the stored settings are unreadable or incomplete."""


class EmailDeliveryMethod(str, Enum):
    DESKTOP = "desktop"
    GRAPH = "graph"


@dataclass
class MessageTemplate:
    subject: str = ""
    body: str = ""


def default_pin_template() -> MessageTemplate:
    return MessageTemplate(subject=DEFAULT_PIN_SUBJECT, body=DEFAULT_PIN_BODY)


def default_otp_template() -> MessageTemplate:
    return MessageTemplate(subject=DEFAULT_OTP_SUBJECT, body=DEFAULT_OTP_BODY)


@dataclass
class EmailSettings:
    """Settings for sending credential notifications through Microsoft Graph."""

    method: EmailDeliveryMethod = EmailDeliveryMethod.DESKTOP
    graph_tenant_id: Optional[str] = None
    graph_client_id: Optional[str] = None
    graph_client_secret: Optional[str] = None
    graph_sender_address: Optional[str] = None
    pin_template: MessageTemplate = field(default_factory=default_pin_template)
    otp_template: MessageTemplate = field(default_factory=default_otp_template)


@dataclass
class ShortIdPolicy:
    """Alphabet constraints for generated short IDs / one-time passcodes."""

    length: int = 6
    use_uppercase: bool = True
    use_lowercase: bool = True
    use_numbers: bool = True
    use_special: bool = False
    exclude_characters: str = ""


@dataclass
class TenantSettings:
    """Credentials and generation policy for one print service tenant."""

    tenant_url: str
    api_key: str
    pin_length: int = 4
    short_id: ShortIdPolicy = field(default_factory=ShortIdPolicy)
    email: EmailSettings = field(default_factory=EmailSettings)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    return int(value)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return str(value)


def _first_present(section: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if section.get(key) is not None:
            return section[key]
    return None


def _length(section: Mapping[str, Any], default: int, *keys: str) -> int:
    raw = _first_present(section, *keys)
    if raw is None:
        return default
    try:
        value = _to_int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value for '{keys[0]}': {raw!r}.") from exc
    if value < 0:
        raise ConfigurationError(f"'{keys[0]}' cannot be negative.")
    return value


def _flag(section: Mapping[str, Any], default: bool, *keys: str) -> bool:
    raw = _first_present(section, *keys)
    return default if raw is None else _to_bool(raw)


def _parse_method(raw: Any) -> EmailDeliveryMethod:
    cleaned = str(raw or "").strip().lower()
    if not cleaned:
        return EmailDeliveryMethod.DESKTOP
    try:
        return EmailDeliveryMethod(cleaned)
    except ValueError as exc:
        raise ConfigurationError(f"Unknown email delivery method '{raw}'.") from exc


def _parse_template(raw: Any, default: MessageTemplate) -> MessageTemplate:
    if not isinstance(raw, Mapping):
        return default
    return MessageTemplate(
        subject=str(raw.get("subject") or ""),
        body=str(raw.get("body") or ""),
    )


def parse_email_settings(section: Any) -> EmailSettings:
    if not isinstance(section, Mapping):
        return EmailSettings()
    return EmailSettings(
        method=_parse_method(section.get("method")),
        graph_tenant_id=_optional_str(section.get("graphTenantId")),
        graph_client_id=_optional_str(section.get("graphClientId")),
        graph_client_secret=_optional_str(section.get("graphClientSecret")),
        graph_sender_address=_optional_str(section.get("graphSenderAddress")),
        pin_template=_parse_template(section.get("pinTemplate"), default_pin_template()),
        otp_template=_parse_template(section.get("otpTemplate"), default_otp_template()),
    )


def parse_settings(raw: Any) -> Optional[TenantSettings]:
    """Validate a stored settings object.

    Returns ``None`` when neither a tenant URL nor an API key is stored, which
    callers treat the same as a missing settings key.
    """

    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ConfigurationError("Stored settings must be an object.")

    tenant_url = normalize_tenant_url(str(raw.get("tenantUrl") or ""))
    api_key = str(raw.get("apiKey") or "").strip()
    if not tenant_url and not api_key:
        return None
    if not tenant_url:
        raise ConfigurationError("tenant URL is not configured")
    if not api_key:
        raise ConfigurationError("API key is not configured")

    policy = ShortIdPolicy(
        length=_length(raw, 6, "shortIdLength", "otpLength"),
        use_uppercase=_flag(raw, True, "shortIdUseUppercase", "otpUseUppercase"),
        use_lowercase=_flag(raw, True, "shortIdUseLowercase", "otpUseLowercase"),
        use_numbers=_flag(raw, True, "shortIdUseNumbers", "otpUseNumbers"),
        use_special=_flag(raw, False, "shortIdUseSpecial", "otpUseSpecial"),
        exclude_characters=str(
            _first_present(raw, "otpExcludeCharacters", "shortIdExcludeCharacters") or ""
        ),
    )
    return TenantSettings(
        tenant_url=tenant_url,
        api_key=api_key,
        pin_length=_length(raw, 4, "pinLength"),
        short_id=policy,
        email=parse_email_settings(raw.get("emailSettings")),
    )


def _resolve_settings_path(path: Optional[Path] = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(ENV_SETTINGS_PATH)
    if env_path:
        return Path(env_path)
    return DEFAULT_SETTINGS_PATH


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in {".yaml", ".yml"}


def _read_store(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) if _is_yaml(path) else json.load(handle)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"failed to read settings store '{path}': {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Settings store '{path}' must contain an object.")
    return payload


def _environment_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_name, key_path in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None:
            continue
        node = overrides
        for part in key_path[:-1]:
            node = node.setdefault(part, {})
        node[key_path[-1]] = value
    return overrides


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            result[key] = _deep_merge(base[key], value)
        else:
            result[key] = value
    return result


def load_settings(path: Optional[Path] = None) -> Optional[TenantSettings]:
    """Load tenant settings from the store, or ``None`` when not configured."""

    store = _read_store(_resolve_settings_path(path))
    raw = store.get(SETTINGS_KEY)
    overrides = _environment_overrides()
    if overrides:
        raw = _deep_merge(raw if isinstance(raw, dict) else {}, overrides)
    return parse_settings(raw)


def settings_to_dict(settings: TenantSettings) -> Dict[str, Any]:
    """Serialize :class:`TenantSettings` with the store's camelCase field names."""

    email = settings.email
    policy = settings.short_id
    return {
        "tenantUrl": settings.tenant_url,
        "apiKey": settings.api_key,
        "pinLength": settings.pin_length,
        "shortIdLength": policy.length,
        "shortIdUseUppercase": policy.use_uppercase,
        "shortIdUseLowercase": policy.use_lowercase,
        "shortIdUseNumbers": policy.use_numbers,
        "shortIdUseSpecial": policy.use_special,
        "otpExcludeCharacters": policy.exclude_characters,
        "emailSettings": {
            "method": email.method.value,
            "graphTenantId": email.graph_tenant_id,
            "graphClientId": email.graph_client_id,
            "graphClientSecret": email.graph_client_secret,
            "graphSenderAddress": email.graph_sender_address,
            "pinTemplate": {
                "subject": email.pin_template.subject,
                "body": email.pin_template.body,
            },
            "otpTemplate": {
                "subject": email.otp_template.subject,
                "body": email.otp_template.body,
            },
        },
    }


def _write_store(target: Path, store: Dict[str, Any]) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        if _is_yaml(target):
            yaml.safe_dump(store, handle, sort_keys=False, indent=2)
        else:
            json.dump(store, handle, indent=2)


def save_settings(settings: TenantSettings, path: Optional[Path] = None) -> Path:
    """Persist the settings under the store key, keeping any unrelated keys."""

    target = _resolve_settings_path(path)
    store = _read_store(target)
    store[SETTINGS_KEY] = settings_to_dict(settings)
    _write_store(target, store)
    return target


def update_settings(updates: Mapping[str, Any], path: Optional[Path] = None) -> Path:
    """Merge ``updates`` into the stored settings object and persist the result.

    Stored keys not named in ``updates`` are kept as they are. Environment
    overrides are not applied, so they never end up in the store. Nothing is
    written when the merged object fails validation.
    """

    target = _resolve_settings_path(path)
    store = _read_store(target)
    current = store.get(SETTINGS_KEY)
    merged = _deep_merge(current if isinstance(current, dict) else {}, dict(updates))
    settings = parse_settings(merged)
    if settings is None:
        raise ConfigurationError("tenant URL and API key are required")
    store[SETTINGS_KEY] = settings_to_dict(settings)
    _write_store(target, store)
    return target


__all__ = [
    "ConfigurationError",
    "EmailDeliveryMethod",
    "EmailSettings",
    "MessageTemplate",
    "SETTINGS_KEY",
    "ShortIdPolicy",
    "TenantSettings",
    "load_settings",
    "parse_email_settings",
    "parse_settings",
    "save_settings",
    "settings_to_dict",
    "update_settings",
]
