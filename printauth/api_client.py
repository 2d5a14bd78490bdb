"""HTTP client for the SAFEQ Cloud print management API."""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from .config import TenantSettings
from .generator import generate_otp_value, generate_pin_value
from .models import UserDetailType
from .url_utils import InvalidUrlError, build_base_url


USER_AGENT = "printauth/0.1"
API_KEY_HEADER = "X-Api-Key"
ACCOUNT_PATH = "api/v1/account"
AUTH_PROVIDERS_PATH = "api/v1/authproviders"
LIST_ALL_USERS_PATH = "api/v1/users/all"
USERS_PATH = "api/v1/users"
DEFAULT_API_PORT = 7300
ERROR_BODY_LIMIT = 400

logger = logging.getLogger(__name__)

FormData = List[Tuple[str, str]]


class PrintServiceError(RuntimeError):
    """Base exception for print service operations."""


class PrintServiceConfigurationError(PrintServiceError):
    """Raised when the tenant URL cannot be used to reach the API."""


class PrintServiceTransportError(PrintServiceError):
    """Raised when the request never produced an HTTP response."""


class PrintServiceDecodeError(PrintServiceError):
    """Raised when a response body is not valid JSON."""


class PrintServiceMissingFieldError(PrintServiceError):
    """Raised when a response lacks an identifier needed for the next call."""

    def __init__(self, field: str) -> None:
        super().__init__(f"required field missing: {field}")
        self.field = field


class PrintServiceHTTPError(PrintServiceError):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, url: str, body: str) -> None:
        status = f"{status_code} {reason}".strip()
        message = f"request to {url} failed with {status}"
        if body:
            message += f" (response: {body})"
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.url = url
        self.body = body


def truncate_body(body: str, limit: int = ERROR_BODY_LIMIT) -> str:
    """Trim ``body`` and cut it to ``limit`` characters, marking the cut with ``...``."""

    trimmed = (body or "").strip()
    if len(trimmed) <= limit:
        return trimmed
    return trimmed[:limit] + "..."


def _extract_id(payload: Any) -> Optional[int]:
    if not isinstance(payload, dict):
        return None
    value = payload.get("id")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


class PrintServiceClient:
    """Thin client over the print service REST API.

    One instance is created per command and owns its own HTTP session.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key.strip()
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

    @classmethod
    def from_settings(
        cls,
        settings: TenantSettings,
        session: Optional[requests.Session] = None,
    ) -> "PrintServiceClient":
        try:
            base_url = build_base_url(settings.tenant_url, DEFAULT_API_PORT)
        except InvalidUrlError as exc:
            raise PrintServiceConfigurationError(str(exc)) from exc
        return cls(base_url, settings.api_key, session=session)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "PrintServiceClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Lookups                                                            #
    # ------------------------------------------------------------------ #
    def get_account_id(self) -> int:
        account = self._request("GET", ACCOUNT_PATH)
        account_id = _extract_id(account)
        if account_id is None:
            raise PrintServiceMissingFieldError("account.id")
        return account_id

    def list_auth_providers(self) -> Any:
        account_id = self.get_account_id()
        return self._request("GET", f"{AUTH_PROVIDERS_PATH}?accountid={account_id}")

    def list_users_for_provider(self, provider_id: int) -> Any:
        return self._request("GET", f"{LIST_ALL_USERS_PATH}?providerid={provider_id}")

    def list_users(self) -> Any:
        """List users of the first authentication provider of the account."""

        providers = self.list_auth_providers()
        first = providers[0] if isinstance(providers, list) and providers else None
        provider_id = _extract_id(first)
        if provider_id is None:
            raise PrintServiceMissingFieldError("authprovider.id")
        return self.list_users_for_provider(provider_id)

    # ------------------------------------------------------------------ #
    # Mutations                                                          #
    # ------------------------------------------------------------------ #
    def update_user_detail(
        self,
        username: str,
        provider_id: Optional[int],
        detail_type: UserDetailType,
        detail_data: Optional[str] = None,
    ) -> Any:
        """Set one user detail; leaving ``detail_data`` out deletes it remotely."""

        form: FormData = [("detailtype", str(int(detail_type)))]
        if provider_id is not None:
            form.append(("providerid", str(provider_id)))
        if detail_data is not None:
            form.append(("detaildata", detail_data))
        path = f"{USERS_PATH}/{quote(username, safe='@')}"
        return self._request("POST", path, data=form)

    def create_user(
        self,
        username: str,
        provider_id: Optional[int] = None,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        card_id: Optional[str] = None,
        short_id: Optional[str] = None,
        otp: Optional[str] = None,
    ) -> Any:
        form: FormData = [("username", username)]
        if provider_id is not None:
            form.append(("providerid", str(provider_id)))

        details: Sequence[Tuple[UserDetailType, Optional[str]]] = (
            (UserDetailType.FULL_NAME, full_name),
            (UserDetailType.EMAIL, email),
            (UserDetailType.CARD_ID, card_id),
            (UserDetailType.PIN, short_id),
            (UserDetailType.OTP, otp),
        )
        for detail_type, value in details:
            if value:
                form.append(("detailtype", str(int(detail_type))))
                form.append(("detaildata", value))

        return self._request("PUT", USERS_PATH, data=form)

    def generate_pin(
        self, username: str, provider_id: Optional[int], settings: TenantSettings
    ) -> dict:
        pin = generate_pin_value(settings)
        self.update_user_detail(username, provider_id, UserDetailType.PIN, pin)
        return {"pin": pin}

    def generate_otp(
        self, username: str, provider_id: Optional[int], settings: TenantSettings
    ) -> dict:
        otp = generate_otp_value(settings)
        self.update_user_detail(username, provider_id, UserDetailType.OTP, otp)
        return {"otp": otp}

    # ------------------------------------------------------------------ #
    # HTTP helpers                                                       #
    # ------------------------------------------------------------------ #
    def endpoint(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self.endpoint(path)
        headers = kwargs.pop("headers", {}) or {}
        headers.setdefault(API_KEY_HEADER, self._api_key)
        headers.setdefault("Accept", "application/json")

        logger.debug("%s %s", method, url)
        try:
            response = self._session.request(method, url, headers=headers, **kwargs)
        except requests.RequestException as exc:
            raise PrintServiceTransportError(f"request to {url} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            logger.warning("%s %s returned %s", method, url, response.status_code)
            raise PrintServiceHTTPError(
                response.status_code,
                response.reason or "",
                url,
                truncate_body(response.text or ""),
            )

        try:
            return response.json()
        except ValueError as exc:
            raise PrintServiceDecodeError(f"failed to parse response from {url}: {exc}") from exc


__all__ = [
    "DEFAULT_API_PORT",
    "PrintServiceClient",
    "PrintServiceConfigurationError",
    "PrintServiceDecodeError",
    "PrintServiceError",
    "PrintServiceHTTPError",
    "PrintServiceMissingFieldError",
    "PrintServiceTransportError",
    "truncate_body",
]
