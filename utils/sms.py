"""Outbound SMS.

`SmsGateway` posts a JSON message to the configured gateway and reports
success as a bool. `SmsDispatcher` runs sends off the request thread so a
slow or failing gateway never holds up (or fails) the caller.

Config keys:
  - SMS_GATEWAY_URL
  - SMS_FROM_NUMBER
  - SMS_TIMEOUT_SECONDS (default: 15)
  - SMS_DISPATCH_MODE (async | sync, default: async)
  - SMS_MAX_WORKERS (default: 4)
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable
from urllib import request
from urllib import error as urlerror

from services.errors import SmsDeliveryFailed

logger = logging.getLogger(__name__)


def _snippet(text: str) -> str:
    snippet = (text or '').strip().replace('\r', ' ').replace('\n', ' ')
    if len(snippet) > 300:
        snippet = snippet[:300] + '…'
    return snippet


def _do_json_request(
    *,
    url: str,
    method: str = 'POST',
    headers: dict[str, str] | None = None,
    body: Any | None = None,
    timeout: float = 15,
) -> tuple[bool, str, str | None]:
    url = (url or '').strip()
    if not url:
        return False, '', 'URL is empty'

    hdrs = dict(headers or {})
    hdrs.setdefault('Accept', 'application/json,text/plain,*/*')

    data_bytes: bytes | None
    if body is None:
        data_bytes = None
    else:
        data_bytes = json.dumps(body).encode('utf-8')
        hdrs.setdefault('Content-Type', 'application/json')

    try:
        req = request.Request(url, data=data_bytes, method=(method or 'POST').strip().upper())
        for k, v in hdrs.items():
            req.add_header(k, v)

        with request.urlopen(req, timeout=timeout) as resp:
            status = getattr(resp, 'status', 0) or 0
            text = (resp.read() or b'').decode('utf-8', errors='replace')

            if 200 <= int(status) < 300:
                return True, text, None

            detail = f'HTTP {status}'
            if _snippet(text):
                detail = f'{detail}: {_snippet(text)}'
            return False, text, detail
    except urlerror.HTTPError as e:
        try:
            body_text = (e.read() or b'').decode('utf-8', errors='replace')
        except Exception:
            body_text = ''

        status = getattr(e, 'code', None)
        detail = f'HTTP Error {status}: {getattr(e, "reason", "")}'.strip()
        if _snippet(body_text):
            detail = f'{detail} | {_snippet(body_text)}'
        return False, body_text, detail
    except Exception as e:
        return False, '', str(e)


def mask_phone(phone: str) -> str:
    digits = ''.join(ch for ch in (phone or '') if ch.isdigit())
    if len(digits) <= 4:
        return '*' * len(digits)
    return '*' * (len(digits) - 4) + digits[-4:]


class SmsGateway:
    """HTTP SMS gateway client.

    The gateway accepts `{"From", "To", "Body", "Media"}` as JSON and answers
    2xx when it has taken the message.
    """

    def __init__(self, url: str, from_number: str, timeout: float = 15):
        self.url = (url or '').strip()
        self.from_number = (from_number or '').strip()
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> 'SmsGateway':
        return cls(
            url=config.get('SMS_GATEWAY_URL', ''),
            from_number=config.get('SMS_FROM_NUMBER', ''),
            timeout=config.get('SMS_TIMEOUT_SECONDS', 15),
        )

    def deliver(self, phone: str, message: str) -> None:
        """Send one message; raise SmsDeliveryFailed if the gateway refuses it."""
        to = (phone or '').strip()
        if not to:
            raise SmsDeliveryFailed('Phone number is empty')
        if not self.url:
            raise SmsDeliveryFailed('SMS_GATEWAY_URL is not configured')

        payload = {
            'From': self.from_number,
            'To': to,
            'Body': message,
            'Media': '',
        }
        ok, _text, err = _do_json_request(
            url=self.url, method='POST', body=payload, timeout=self.timeout
        )
        if not ok:
            raise SmsDeliveryFailed(f'SMS send failed to {mask_phone(to)}: {err or "Unknown error"}')

    def send(self, phone: str, message: str) -> bool:
        try:
            self.deliver(phone, message)
        except SmsDeliveryFailed as e:
            logger.warning("%s", e)
            return False
        logger.info("SMS sent to %s", mask_phone(phone))
        return True


class SmsDispatcher:
    """Fire-and-forget runner for SMS sends.

    In `sync` mode the send runs inline (still never raising); otherwise it is
    handed to a small thread pool and the caller returns immediately.
    """

    def __init__(self, mode: str = 'async', max_workers: int = 4):
        self.mode = (mode or 'async').strip().lower()
        self._executor = None
        if self.mode != 'sync':
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, int(max_workers or 1)),
                thread_name_prefix='sms',
            )

    @classmethod
    def from_config(cls, config) -> 'SmsDispatcher':
        return cls(
            mode=config.get('SMS_DISPATCH_MODE', 'async'),
            max_workers=config.get('SMS_MAX_WORKERS', 4),
        )

    def dispatch(self, send: Callable[[str, str], bool], phone: str, message: str) -> None:
        if self._executor is None:
            self._run(send, phone, message)
            return
        self._executor.submit(self._run, send, phone, message)

    @staticmethod
    def _run(send: Callable[[str, str], bool], phone: str, message: str) -> bool:
        try:
            delivered = bool(send(phone, message))
        except Exception:
            logger.exception("SMS send to %s raised", mask_phone(phone))
            return False
        if not delivered:
            logger.warning("SMS to %s was not delivered", mask_phone(phone))
        return delivered

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
