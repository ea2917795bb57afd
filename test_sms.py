"""
SMS gateway and dispatcher tests
"""
import io
import json
import threading
from urllib import error as urlerror

import pytest

import utils.sms as sms_module
from services.errors import SmsDeliveryFailed
from utils.sms import SmsDispatcher, SmsGateway, mask_phone


class _FakeResponse:
    def __init__(self, status=200, body=b'{"ok": true}'):
        self.status = status
        self._body = body

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def captured(monkeypatch):
    calls = []

    def fake_urlopen(req, timeout=None):
        calls.append({
            'url': req.full_url,
            'method': req.get_method(),
            'headers': {k.lower(): v for k, v in req.header_items()},
            'body': json.loads(req.data.decode('utf-8')),
            'timeout': timeout,
        })
        return _FakeResponse()

    monkeypatch.setattr(sms_module.request, 'urlopen', fake_urlopen)
    return calls


class TestSmsGateway:
    """JSON gateway client"""

    def test_send_posts_gateway_payload(self, captured):
        gateway = SmsGateway('https://sms.example/v2/sms/send', '9544665557', timeout=5)

        assert gateway.send('9545550101', 'Hello') is True

        assert len(captured) == 1
        call = captured[0]
        assert call['url'] == 'https://sms.example/v2/sms/send'
        assert call['method'] == 'POST'
        assert call['headers']['content-type'] == 'application/json'
        assert call['timeout'] == 5
        assert call['body'] == {
            'From': '9544665557',
            'To': '9545550101',
            'Body': 'Hello',
            'Media': '',
        }

    def test_http_error_returns_false(self, monkeypatch):
        def fake_urlopen(req, timeout=None):
            raise urlerror.HTTPError(req.full_url, 502, 'Bad Gateway', {}, io.BytesIO(b'upstream down'))

        monkeypatch.setattr(sms_module.request, 'urlopen', fake_urlopen)
        gateway = SmsGateway('https://sms.example/send', '1')

        assert gateway.send('9545550101', 'Hello') is False
        with pytest.raises(SmsDeliveryFailed) as exc:
            gateway.deliver('9545550101', 'Hello')
        assert '502' in str(exc.value)
        assert 'upstream down' in str(exc.value)

    def test_transport_error_returns_false(self, monkeypatch):
        def fake_urlopen(req, timeout=None):
            raise urlerror.URLError('connection refused')

        monkeypatch.setattr(sms_module.request, 'urlopen', fake_urlopen)

        assert SmsGateway('https://sms.example/send', '1').send('9545550101', 'Hi') is False

    def test_non_2xx_response_returns_false(self, monkeypatch):
        monkeypatch.setattr(
            sms_module.request, 'urlopen',
            lambda req, timeout=None: _FakeResponse(status=304, body=b'not modified'),
        )

        assert SmsGateway('https://sms.example/send', '1').send('9545550101', 'Hi') is False

    def test_unconfigured_gateway_does_not_call_out(self, captured):
        assert SmsGateway('', '1').send('9545550101', 'Hi') is False
        assert SmsGateway('https://sms.example/send', '1').send('', 'Hi') is False
        assert captured == []

    def test_from_config(self):
        gateway = SmsGateway.from_config({
            'SMS_GATEWAY_URL': ' https://sms.example/send ',
            'SMS_FROM_NUMBER': '9544665557',
            'SMS_TIMEOUT_SECONDS': 7,
        })
        assert gateway.url == 'https://sms.example/send'
        assert gateway.from_number == '9544665557'
        assert gateway.timeout == 7


class TestSmsDispatcher:
    """Fire-and-forget dispatch"""

    def test_sync_mode_runs_inline(self):
        sent = []
        dispatcher = SmsDispatcher(mode='sync')

        dispatcher.dispatch(lambda phone, msg: sent.append((phone, msg)) or True, '1', 'hi')

        assert sent == [('1', 'hi')]

    def test_async_mode_does_not_block_caller(self):
        release = threading.Event()
        done = threading.Event()

        def slow_send(phone, message):
            release.wait(timeout=5)
            done.set()
            return True

        dispatcher = SmsDispatcher(mode='async', max_workers=1)
        dispatcher.dispatch(slow_send, '1', 'hi')

        assert not done.is_set()
        release.set()
        dispatcher.shutdown(wait=True)
        assert done.is_set()

    def test_send_errors_are_swallowed(self):
        def boom(phone, message):
            raise RuntimeError('gateway exploded')

        SmsDispatcher(mode='sync').dispatch(boom, '1', 'hi')

        dispatcher = SmsDispatcher(mode='async')
        dispatcher.dispatch(boom, '1', 'hi')
        dispatcher.shutdown(wait=True)


def test_mask_phone():
    assert mask_phone('9545550101') == '******0101'
    assert mask_phone('123') == '***'
    assert mask_phone('') == ''
