"""Data models shared by the print service client, bulk runner and mail relay."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class UserDetailType(IntEnum):
    """Detail type codes understood by the print service ``users`` endpoint."""

    FULL_NAME = 0
    EMAIL = 1
    HOME_FOLDER = 2
    PASSWORD = 3
    CARD_ID = 4
    PIN = 5
    OTP = 10
    DEPARTMENT = 11
    EXPIRATION = 12
    EXTERNAL_ID = 14


class EmailContentType(Enum):
    TEXT = "text"
    HTML = "html"

    @property
    def graph_value(self) -> str:
        return "HTML" if self is EmailContentType.HTML else "Text"

    @classmethod
    def parse(cls, raw: Any) -> "EmailContentType":
        if isinstance(raw, cls):
            return raw
        cleaned = str(raw or "").strip().lower()
        if not cleaned:
            return cls.TEXT
        try:
            return cls(cleaned)
        except ValueError as exc:
            raise ValueError(f"Unsupported email content type '{raw}'.") from exc


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_provider_id(value: Any) -> Optional[int]:
    """Coerce a provider id from JSON or CSV input, returning ``None`` when absent."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    cleaned = str(value).strip()
    if not cleaned:
        return None
    try:
        return int(cleaned)
    except ValueError:
        return None


@dataclass
class ImportUser:
    """A user to create remotely, typically read from a CSV import."""

    user_name: str
    full_name: str = ""
    email: str = ""
    card_id: str = ""
    short_id: str = ""
    otp: str = ""
    provider_id: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ImportUser":
        return cls(
            user_name=_clean(data.get("userName") or data.get("username")),
            full_name=_clean(data.get("fullName")),
            email=_clean(data.get("email")),
            card_id=_clean(data.get("cardId")),
            short_id=_clean(data.get("shortId")),
            otp=_clean(data.get("otp")),
            provider_id=parse_provider_id(data.get("providerId")),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "userName": self.user_name,
            "fullName": self.full_name,
            "email": self.email,
            "cardId": self.card_id,
            "shortId": self.short_id,
            "otp": self.otp,
            "providerId": self.provider_id,
        }
        if self.errors:
            payload["errors"] = list(self.errors)
        return payload

    def validate(self) -> List[str]:
        errors: List[str] = []
        if not self.user_name:
            errors.append("Username is required")
        if self.provider_id is not None and self.provider_id < 0:
            errors.append("Provider ID must be a positive number")
        return errors


@dataclass(frozen=True)
class PreparedEmailMessage:
    """A fully rendered message ready to hand to the mail relay."""

    to: str
    subject: str
    body: str
    content_type: EmailContentType = EmailContentType.TEXT

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PreparedEmailMessage":
        return cls(
            to=str(data.get("to") or ""),
            subject=str(data.get("subject") or ""),
            body=str(data.get("body") or ""),
            content_type=EmailContentType.parse(data.get("contentType")),
        )


@dataclass(frozen=True)
class BulkItemResult:
    """Outcome of a single user within a bulk operation."""

    user: Mapping[str, Any]
    success: bool
    value: Optional[str] = None
    error: Optional[str] = None
    pin: Optional[str] = None
    otp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"user": dict(self.user), "success": self.success}
        if self.success:
            payload["value"] = self.value
        else:
            payload["error"] = self.error
        if self.pin is not None:
            payload["pin"] = self.pin
        if self.otp is not None:
            payload["otp"] = self.otp
        return payload


@dataclass(frozen=True)
class BulkResult:
    success: int
    failed: int
    results: Tuple[BulkItemResult, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "failed": self.failed,
            "results": [item.to_dict() for item in self.results],
        }


@dataclass
class EmailSendSummary:
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "failed": self.failed, "errors": list(self.errors)}


__all__ = [
    "BulkItemResult",
    "BulkResult",
    "EmailContentType",
    "EmailSendSummary",
    "ImportUser",
    "PreparedEmailMessage",
    "UserDetailType",
    "parse_provider_id",
]
