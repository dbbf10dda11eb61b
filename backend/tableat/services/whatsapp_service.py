"""WhatsApp messaging through an Ultramsg-compatible gateway.

Provides:
- Plain text messages (text bills, order updates)
- Document messages with a base64 payload (HTML invoices)
- ``wa.me`` deep links the dashboard opens when the gateway is not
  configured or a send fails

Send failures never raise: callers get a ``MessageResult`` with
``success=False`` and an error string, plus the fallback link.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from tableat.core.config import settings

logger = logging.getLogger(__name__)

_PHONE_STRIP = re.compile(r"[^\d+]")


@dataclass
class MessageResult:
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None
    fallback_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success}
        if self.error:
            body["error"] = self.error
        if self.message_id:
            body["message_id"] = self.message_id
        if self.fallback_url:
            body["fallback_url"] = self.fallback_url
        return body


def normalize_phone(phone: str, country_code: Optional[str] = None) -> str:
    """Keep digits and ``+``; numbers without ``+`` get the default country code."""
    cleaned = _PHONE_STRIP.sub("", phone or "")
    if not cleaned.startswith("+"):
        cleaned = (country_code or settings.default_country_code) + cleaned
    return cleaned


def chat_link(phone: str, text: str) -> str:
    """Click-to-chat URL; wa.me expects the number without ``+``."""
    number = normalize_phone(phone).lstrip("+")
    return f"https://wa.me/{number}?text={quote(text, safe='')}"


class WhatsAppService:
    """Ultramsg-style gateway client."""

    def __init__(
        self,
        instance_id: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._instance_id = instance_id if instance_id is not None else settings.whatsapp_instance_id
        self._api_key = api_key if api_key is not None else settings.whatsapp_api_key
        self._base_url = (base_url or settings.whatsapp_base_url).rstrip("/")
        self._timeout = timeout or settings.whatsapp_timeout
        self._transport = transport
        self._configured = bool(self._instance_id and self._api_key)
        self._message_log: List[Dict[str, Any]] = []

        if not self._configured:
            logger.warning(
                "WhatsApp not configured. Set WHATSAPP_INSTANCE_ID and "
                "WHATSAPP_API_KEY environment variables."
            )

    @property
    def is_configured(self) -> bool:
        return self._configured

    def _url(self, kind: str) -> str:
        return f"{self._base_url}/{self._instance_id}/messages/{kind}"

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_text(self, phone: str, text: str) -> MessageResult:
        """Send a plain text message."""
        form = {"to": normalize_phone(phone), "body": text}
        result = await self._send("chat", form)
        if not result.success:
            result.fallback_url = chat_link(phone, text)
        return result

    async def send_document(
        self,
        phone: str,
        caption: str,
        document_base64: str,
        filename: str = "bill.html",
    ) -> MessageResult:
        """Send a base64 document with a caption."""
        form = {
            "to": normalize_phone(phone),
            "document": document_base64,
            "caption": caption,
            "filename": filename,
        }
        result = await self._send("document", form)
        if not result.success:
            result.fallback_url = chat_link(phone, caption)
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _send(self, kind: str, form: Dict[str, str]) -> MessageResult:
        if not self._configured:
            return MessageResult(success=False, error="WhatsApp is not configured")

        log_entry: Dict[str, Any] = {
            "to": form.get("to"),
            "type": kind,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url(kind), data={"token": self._api_key, **form})
            try:
                data = resp.json()
            except ValueError:
                data = {}
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp {kind} request failed: {e}")
            log_entry["error"] = "Network error"
            self._record(log_entry)
            return MessageResult(success=False, error="Network error")

        log_entry["status_code"] = resp.status_code
        if resp.is_success and data.get("sent") in (True, "true"):
            log_entry["message_id"] = data.get("id")
            self._record(log_entry)
            return MessageResult(success=True, message_id=str(data["id"]) if data.get("id") else None)

        error = data.get("error") or f"Failed to send {kind} message"
        if not isinstance(error, str):
            error = str(error)
        logger.error(f"WhatsApp {kind} send failed ({resp.status_code}): {error}")
        log_entry["error"] = error
        self._record(log_entry)
        return MessageResult(success=False, error=error)

    def _record(self, entry: Dict[str, Any]) -> None:
        self._message_log.append(entry)
        if len(self._message_log) > 1000:
            self._message_log = self._message_log[-500:]

    def get_message_log(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self._message_log[-limit:]


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_service: Optional[WhatsAppService] = None


def get_whatsapp_service() -> WhatsAppService:
    global _service
    if _service is None:
        _service = WhatsAppService()
    return _service
