"""Sequential bulk operations over many print service users."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .api_client import PrintServiceClient, PrintServiceError
from .config import TenantSettings
from .generator import generate_otp_value, generate_pin_value
from .models import BulkItemResult, BulkResult, ImportUser, parse_provider_id


logger = logging.getLogger(__name__)

SingleUserOperation = Callable[[str, Optional[int]], Dict[str, Any]]


class _BulkAccumulator:
    """Collects per-item outcomes in input order."""

    def __init__(self) -> None:
        self.success = 0
        self.failed = 0
        self.items: List[BulkItemResult] = []

    def ok(self, user: Mapping[str, Any], value: Optional[str] = None, **generated: Optional[str]) -> None:
        self.success += 1
        self.items.append(BulkItemResult(user=user, success=True, value=value, **generated))

    def fail(self, user: Mapping[str, Any], error: str, **generated: Optional[str]) -> None:
        self.failed += 1
        self.items.append(BulkItemResult(user=user, success=False, error=error, **generated))

    def result(self) -> BulkResult:
        return BulkResult(success=self.success, failed=self.failed, results=tuple(self.items))


def _username(user: Mapping[str, Any]) -> str:
    return str(user.get("userName") or user.get("username") or "").strip()


def _run_generation(
    users: Iterable[Mapping[str, Any]],
    operation: SingleUserOperation,
    value_key: str,
) -> BulkResult:
    acc = _BulkAccumulator()
    for user in users:
        username = _username(user)
        if not username:
            acc.fail(user, "Username is required")
            continue
        try:
            outcome = operation(username, parse_provider_id(user.get("providerId")))
        except PrintServiceError as exc:
            logger.warning("Bulk %s failed for %s: %s", value_key, username, exc)
            acc.fail(user, str(exc))
            continue
        acc.ok(user, value=outcome.get(value_key))

    result = acc.result()
    logger.info("Bulk %s finished: %s succeeded, %s failed", value_key, result.success, result.failed)
    return result


def generate_bulk_pins(
    client: PrintServiceClient,
    users: Iterable[Mapping[str, Any]],
    settings: TenantSettings,
) -> BulkResult:
    """Generate and assign a new PIN for every user, one request at a time."""

    return _run_generation(
        users,
        lambda username, provider_id: client.generate_pin(username, provider_id, settings),
        "pin",
    )


def generate_bulk_otps(
    client: PrintServiceClient,
    users: Iterable[Mapping[str, Any]],
    settings: TenantSettings,
) -> BulkResult:
    """Generate and assign a new one-time passcode for every user."""

    return _run_generation(
        users,
        lambda username, provider_id: client.generate_otp(username, provider_id, settings),
        "otp",
    )


def create_users(
    client: PrintServiceClient,
    users: Iterable[Mapping[str, Any]],
    settings: TenantSettings,
    auto_generate_pin: bool = False,
    auto_generate_otp: bool = False,
    default_provider_id: Optional[int] = None,
) -> BulkResult:
    """Create every user remotely.

    With ``auto_generate_pin`` / ``auto_generate_otp`` a missing PIN or OTP is
    generated locally before the request and reported back in the item result.
    ``default_provider_id`` applies to users that do not name a provider.
    """

    acc = _BulkAccumulator()
    for user in users:
        entry = ImportUser.from_dict(user)
        if entry.provider_id is None:
            entry.provider_id = default_provider_id
        generated: Dict[str, Optional[str]] = {}
        if auto_generate_pin and not entry.short_id:
            entry.short_id = generate_pin_value(settings)
            generated["pin"] = entry.short_id
        if auto_generate_otp and not entry.otp:
            entry.otp = generate_otp_value(settings)
            generated["otp"] = entry.otp

        errors = entry.validate()
        if errors:
            acc.fail(user, ", ".join(errors), **generated)
            continue

        try:
            client.create_user(
                entry.user_name,
                provider_id=entry.provider_id,
                full_name=entry.full_name,
                email=entry.email,
                card_id=entry.card_id,
                short_id=entry.short_id,
                otp=entry.otp,
            )
        except PrintServiceError as exc:
            logger.warning("Creating user %s failed: %s", entry.user_name, exc)
            acc.fail(user, str(exc), **generated)
            continue
        acc.ok(user, value=entry.user_name, **generated)

    result = acc.result()
    logger.info("User creation finished: %s succeeded, %s failed", result.success, result.failed)
    return result


__all__ = ["create_users", "generate_bulk_otps", "generate_bulk_pins"]
