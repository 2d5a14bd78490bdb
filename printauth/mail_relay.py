"""Send prepared credential emails through Microsoft Graph."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote

import msal
import requests

from .config import EmailDeliveryMethod, EmailSettings
from .models import EmailSendSummary, PreparedEmailMessage


GRAPH_SCOPE = ["https://graph.microsoft.com/.default"]
GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
AUTHORITY_HOST = "https://login.microsoftonline.com"
USER_AGENT = "printauth/0.1"
LOG_EXCERPT_LIMIT = 180

logger = logging.getLogger(__name__)


class MailRelayError(RuntimeError):
    """Base exception for Graph mail delivery."""


class MethodNotGraphError(MailRelayError):
    def __init__(self) -> None:
        super().__init__(
            "Email delivery is configured for desktop drafts. "
            "Switch to Microsoft Graph to send directly."
        )


class MissingGraphFieldError(MailRelayError):
    def __init__(self, field: str) -> None:
        super().__init__(
            f"Email delivery via Microsoft Graph is missing the required setting: {field}"
        )
        self.field = field


class MailRelayTokenError(MailRelayError):
    """Raised when no access token could be obtained for the batch."""

    def __init__(self, error: str, description: str) -> None:
        super().__init__(f"Unable to acquire Microsoft Graph token: {error} - {description}")
        self.error = error
        self.description = description


def truncate_for_log(text: str, limit: int = LOG_EXCERPT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def build_send_payload(message: PreparedEmailMessage) -> Dict[str, Any]:
    return {
        "message": {
            "subject": message.subject,
            "body": {
                "contentType": message.content_type.graph_value,
                "content": message.body,
            },
            "toRecipients": [{"emailAddress": {"address": message.to}}],
        },
        "saveToSentItems": False,
    }


class GraphMailer:
    """Delivers a batch of messages from one sender mailbox.

    Every call to :meth:`send` starts unauthenticated and requests a fresh
    token, so nothing is reused between batches.
    """

    def __init__(
        self,
        settings: EmailSettings,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings
        self._session = session
        self._token: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    def _required(self) -> Dict[str, str]:
        fields = {
            "graphTenantId": self._settings.graph_tenant_id,
            "graphClientId": self._settings.graph_client_id,
            "graphClientSecret": self._settings.graph_client_secret,
            "graphSenderAddress": self._settings.graph_sender_address,
        }
        resolved: Dict[str, str] = {}
        for name, value in fields.items():
            cleaned = (value or "").strip()
            if not cleaned:
                raise MissingGraphFieldError(name)
            resolved[name] = cleaned
        return resolved

    def _acquire_token(self, tenant_id: str, client_id: str, client_secret: str) -> str:
        try:
            app = msal.ConfidentialClientApplication(
                client_id=client_id,
                client_credential=client_secret,
                authority=f"{AUTHORITY_HOST}/{tenant_id}",
            )
            result = app.acquire_token_for_client(scopes=GRAPH_SCOPE)
        except (ValueError, requests.RequestException) as exc:
            raise MailRelayTokenError("token_request_failed", truncate_for_log(str(exc))) from exc

        if not isinstance(result, dict) or "access_token" not in result:
            result = result if isinstance(result, dict) else {}
            raise MailRelayTokenError(
                str(result.get("error", "token_error")),
                truncate_for_log(
                    str(result.get("error_description", "Unable to acquire Graph token."))
                ),
            )
        return str(result["access_token"])

    def send(self, messages: Sequence[PreparedEmailMessage]) -> EmailSendSummary:
        self._token = None
        if self._settings.method != EmailDeliveryMethod.GRAPH:
            raise MethodNotGraphError()

        summary = EmailSendSummary()
        if not messages:
            return summary

        fields = self._required()
        self._token = self._acquire_token(
            fields["graphTenantId"], fields["graphClientId"], fields["graphClientSecret"]
        )
        sender = quote(fields["graphSenderAddress"], safe="")
        send_url = f"{GRAPH_BASE_URL}/users/{sender}/sendMail"

        session = self._session or requests.Session()
        try:
            for message in messages:
                self._send_one(session, send_url, message, summary)
        finally:
            if self._session is None:
                session.close()
            self._token = None

        logger.info("Graph delivery finished: %s sent, %s failed", summary.success, summary.failed)
        return summary

    def _send_one(
        self,
        session: requests.Session,
        send_url: str,
        message: PreparedEmailMessage,
        summary: EmailSendSummary,
    ) -> None:
        if not message.to.strip():
            summary.record_failure("Recipient address is required for every email")
            return

        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        try:
            response = session.post(send_url, headers=headers, json=build_send_payload(message))
        except requests.RequestException as exc:
            logger.warning("Sending email to %s failed: %s", message.to, exc)
            summary.record_failure(f"{message.to}: failed to send email ({exc})")
            return

        if 200 <= response.status_code < 300:
            summary.success += 1
            return

        body = response.text or "(no details)"
        logger.warning("Graph returned %s for %s", response.status_code, message.to)
        summary.record_failure(
            f"{message.to}: Graph returned {response.status_code} {truncate_for_log(body)}"
        )


def send_graph_emails(
    settings: EmailSettings,
    messages: Sequence[PreparedEmailMessage],
    session: Optional[requests.Session] = None,
) -> EmailSendSummary:
    return GraphMailer(settings, session=session).send(messages)


__all__ = [
    "GraphMailer",
    "MailRelayError",
    "MailRelayTokenError",
    "MethodNotGraphError",
    "MissingGraphFieldError",
    "build_send_payload",
    "send_graph_emails",
]
