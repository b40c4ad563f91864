"""Outbound notification delivery (SMS gateway + transactional e-mail API).

Delivery is fire-and-forget from the core's point of view: ``send`` reports
``True``/``False`` and never raises for transport failures.
"""
from __future__ import annotations

import logging
from typing import Protocol

import requests

from ..core.enums import NotificationChannel

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    def send(self, tenant_id: str, channel: NotificationChannel, recipient: str, content: str) -> bool:
        raise NotImplementedError


def format_phone_number(phone: str) -> str:
    """Strip everything except digits, keeping a leading '+' country prefix."""
    raw = (phone or "").strip()
    digits = "".join(c for c in raw if c.isdigit())
    return f"+{digits}" if raw.startswith("+") else digits


class HttpNotificationDispatcher(NotificationDispatcher):
    def __init__(
        self,
        *,
        sms_api_url: str = "",
        sms_api_key: str = "",
        sms_sender_name: str = "",
        email_api_url: str = "",
        email_api_key: str = "",
        email_from: str = "",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self._sms_api_url = sms_api_url
        self._sms_api_key = sms_api_key
        self._sms_sender_name = sms_sender_name
        self._email_api_url = email_api_url
        self._email_api_key = email_api_key
        self._email_from = email_from
        self._timeout = float(timeout)
        self._client = session or requests.Session()

    def send(self, tenant_id: str, channel: NotificationChannel, recipient: str, content: str) -> bool:
        if channel == NotificationChannel.SMS:
            return self._send_sms(tenant_id, recipient, content)
        if channel == NotificationChannel.EMAIL:
            return self._send_email(tenant_id, recipient, content)
        raise ValueError(f"Unsupported channel: {channel}")

    def _send_sms(self, tenant_id: str, phone: str, message: str) -> bool:
        if not self._sms_api_url:
            logger.warning("SMS gateway not configured; dropping message tenant=%s", tenant_id)
            return False

        payload = {
            "sender": self._sms_sender_name,
            "message": message,
            "recipients": [format_phone_number(phone)],
        }
        headers = {"api-key": self._sms_api_key, "Content-Type": "application/json"}
        return self._post(self._sms_api_url, headers=headers, payload=payload, tenant_id=tenant_id, channel="sms")

    def _send_email(self, tenant_id: str, address: str, body: str) -> bool:
        if not self._email_api_url:
            logger.warning("E-mail API not configured; dropping message tenant=%s", tenant_id)
            return False

        payload = {
            "from": self._email_from,
            "to": [address],
            "subject": "We missed you",
            "text": body,
        }
        headers = {"Authorization": f"Bearer {self._email_api_key}", "Content-Type": "application/json"}
        return self._post(self._email_api_url, headers=headers, payload=payload, tenant_id=tenant_id, channel="email")

    def _post(self, url: str, *, headers: dict, payload: dict, tenant_id: str, channel: str) -> bool:
        try:
            response = self._client.post(url, headers=headers, json=payload, timeout=self._timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning("%s delivery failed tenant=%s: %s", channel, tenant_id, e)
            return False
        logger.info("%s delivered tenant=%s", channel, tenant_id)
        return True
