import pytest
import requests

import qr_provider
from errors import FetchError, RemoteServiceError


class _Response:
    def __init__(self, status_code, content=b""):
        self.status_code = status_code
        self.content = content


def test_fetch_qr_builds_chart_request(monkeypatch):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params, timeout))
        return _Response(200, b"\x89PNG")

    monkeypatch.setattr(qr_provider.requests, "get", fake_get)
    image = qr_provider.fetch_qr("https://x.test/exec?id=CERT-1", size=250, service_url="https://charts.test/chart")

    assert image == b"\x89PNG"
    url, params, timeout = calls[0]
    assert url == "https://charts.test/chart"
    assert params == {"cht": "qr", "chs": "250x250", "chld": "L|0", "chl": "https://x.test/exec?id=CERT-1"}
    assert timeout == 20


def test_fetch_qr_non_200_carries_status(monkeypatch):
    monkeypatch.setattr(qr_provider.requests, "get", lambda *a, **kw: _Response(503))
    with pytest.raises(FetchError) as excinfo:
        qr_provider.fetch_qr("https://x.test")
    assert excinfo.value.status_code == 503
    assert isinstance(excinfo.value, RemoteServiceError)


def test_fetch_qr_connection_error(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(qr_provider.requests, "get", boom)
    with pytest.raises(FetchError) as excinfo:
        qr_provider.fetch_qr("https://x.test")
    assert excinfo.value.status_code is None
