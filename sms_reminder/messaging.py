"""SMS gateways used to deliver reminders."""

from typing import Optional, Protocol

import httpx
from loguru import logger

from .models import SendResult


DEFAULT_TWILIO_BASE_URL = "https://api.twilio.com"


class SmsGateway(Protocol):
    """
    Messaging operations the dispatch scheduler depends on.

    Ordinary delivery failures are reported through ``SendResult.success``;
    only malformed calls raise.
    """

    def send(self, phone_number: str, title: str, description: Optional[str] = None) -> SendResult: ...


def format_reminder_message(title: str, description: Optional[str] = None) -> str:
    """Build the SMS body for a reminder."""
    body = f"Reminder: {title}"
    if description:
        body += f"\n\n{description}"
    return body


def _check_call(phone_number: str, title: str) -> None:
    if not phone_number or not phone_number.strip():
        raise ValueError("phone_number is required")
    if not title or not title.strip():
        raise ValueError("title is required")


class TwilioSmsGateway:
    """
    Sends reminders through the Twilio Messages REST API.

    Args:
        account_sid: Twilio account SID
        auth_token: Twilio auth token
        from_number: Sender phone number owned by the account
        base_url: API root, overridable for tests or regional endpoints
        timeout: Request timeout in seconds
        client: Optional preconfigured httpx client
    """

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        base_url: str = DEFAULT_TWILIO_BASE_URL,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"

    def send(self, phone_number: str, title: str, description: Optional[str] = None) -> SendResult:
        _check_call(phone_number, title)
        if not self.is_configured:
            return SendResult(success=False, error="Twilio not configured")

        payload = {
            "To": phone_number,
            "From": self.from_number,
            "Body": format_reminder_message(title, description),
        }
        try:
            resp = self._client.post(
                self.messages_url,
                data=payload,
                auth=(self.account_sid, self.auth_token),
            )
        except httpx.HTTPError as e:
            logger.warning(f"Twilio request failed: {e}")
            return SendResult(success=False, error=f"Twilio request failed: {e}")

        if resp.is_success:
            message_id = _json_or_empty(resp).get("sid")
            logger.debug(f"Twilio accepted message {message_id} to {phone_number}")
            return SendResult(success=True, message_id=message_id)

        data = _json_or_empty(resp)
        error = data.get("message") or f"HTTP {resp.status_code}"
        if data.get("code"):
            error = f"{error} (code {data['code']})"
        return SendResult(success=False, error=error)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "TwilioSmsGateway":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _json_or_empty(resp: httpx.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class LoggingSmsGateway:
    """Dry-run gateway: logs the message instead of sending it."""

    def __init__(self):
        self.sent_count = 0

    def send(self, phone_number: str, title: str, description: Optional[str] = None) -> SendResult:
        _check_call(phone_number, title)
        self.sent_count += 1
        logger.info(f"[SMS:DRY-RUN] to={phone_number} body={format_reminder_message(title, description)!r}")
        return SendResult(success=True, message_id=f"dry-run-{self.sent_count}")

    def close(self) -> None:
        pass
