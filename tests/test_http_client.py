import io

import pytest
import requests

from logshare.core.errors import TransportError
from logshare.core.http_client import HttpClient


class _FakeResponse:
    def __init__(self, chunks: list[bytes], status_code: int = 200) -> None:
        self.status_code = status_code
        self.url = "http://example.test/logs?start=1"
        self.headers = {"Content-Type": "application/json"}
        self._chunks = chunks
        self.closed = False

    def iter_content(self, chunk_size: int = 16_384):
        del chunk_size
        for c in self._chunks:
            yield c

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        del exc_type, exc, tb
        self.close()
        return False


def test_stream_copies_body_and_counts_records(monkeypatch):
    client = HttpClient()
    fake = _FakeResponse([b'{"a":1}\n{"a"', b":2}\n", b"", b'{"a":3}'])
    seen = {}

    def _fake_request(**kwargs):
        seen.update(kwargs)
        return fake

    monkeypatch.setattr(client._session, "request", _fake_request)
    dest = io.BytesIO()
    res = client.stream("get", "http://example.test/logs", dest, params={"start": 1})
    client.close()

    assert res.ok is True
    assert res.url == "http://example.test/logs?start=1"
    assert dest.getvalue() == b'{"a":1}\n{"a":2}\n{"a":3}'
    assert res.lines == 3
    assert res.bytes_written == len(dest.getvalue())
    assert seen["method"] == "GET"
    assert seen["stream"] is True
    assert fake.closed is True


def test_stream_keeps_error_body_out_of_dest(monkeypatch):
    client = HttpClient(max_error_bytes=5)
    fake = _FakeResponse([b"forbidden", b"!!"], status_code=403)
    monkeypatch.setattr(client._session, "request", lambda **kwargs: fake)

    dest = io.BytesIO()
    res = client.stream("GET", "http://example.test/logs", dest)

    assert res.ok is False
    assert res.status_code == 403
    assert res.error_body == "forbi"
    assert dest.getvalue() == b""
    assert fake.closed is True


def test_request_exception_raises_transport_error(monkeypatch):
    client = HttpClient()

    def _boom(**kwargs):
        del kwargs
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(client._session, "request", _boom)

    with pytest.raises(TransportError, match="ConnectionError: connection refused"):
        client.stream("GET", "http://example.test/logs", io.BytesIO())
    with pytest.raises(TransportError):
        client.request_json("GET", "http://example.test/zones")
