from __future__ import annotations

import io
import threading
import urllib.parse
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from logshare.core.client import LogshareClient, build_client
from logshare.core.config import LogshareConfig
from logshare.core.errors import ApiError, LogshareError


RECORDS = b'{"RayID":"a1"}\n{"RayID":"a2"}\n{"RayID":"a3"}\n'
FIELDS = b'{"RayID":"Ray identifier","ClientIP":"Client IP"}'


class Handler(BaseHTTPRequestHandler):
    seen: list[dict] = []

    def do_GET(self):
        parsed = urllib.parse.urlparse(self.path)
        Handler.seen.append(
            {
                "path": parsed.path,
                "query": dict(urllib.parse.parse_qsl(parsed.query)),
                "key": self.headers.get("X-Auth-Key"),
                "email": self.headers.get("X-Auth-Email"),
            }
        )

        if parsed.path == "/zones/z1/logs/received":
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.end_headers()
            self.wfile.write(RECORDS)
            return

        if parsed.path == "/zones/z1/logs/received/fields":
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.end_headers()
            self.wfile.write(FIELDS)
            return

        self.send_response(400)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(b'{"success":false,"errors":[{"code":1000,"message":"bad zone"}]}')

    def log_message(self, format, *args):
        return


def _run_server(server: HTTPServer):
    server.serve_forever()


@pytest.fixture
def api_base():
    Handler.seen = []
    server = HTTPServer(("127.0.0.1", 0), Handler)
    t = threading.Thread(target=_run_server, args=(server,), daemon=True)
    t.start()
    host, port = server.server_address
    try:
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()


def test_get_from_timestamp_streams_records(api_base):
    dest = io.BytesIO()
    client = LogshareClient(
        "k",
        "e",
        fields=["RayID", "ClientIP"],
        dest=dest,
        sample=0.5,
        timestamp_format="rfc3339",
        base_url=api_base,
    )

    meta = client.get_from_timestamp("z1", 1000, 2000, 5)

    assert dest.getvalue() == RECORDS
    assert meta.status_code == 200
    assert meta.count == 3
    assert isinstance(meta.duration_ms, int)
    assert meta.url.startswith(f"{api_base}/zones/z1/logs/received?")

    req = Handler.seen[-1]
    assert req["key"] == "k"
    assert req["email"] == "e"
    assert req["query"] == {
        "start": "1000",
        "end": "2000",
        "count": "5",
        "sample": "0.5",
        "fields": "RayID,ClientIP",
        "timestamps": "rfc3339",
    }


def test_get_from_timestamp_all_records_omits_count(api_base):
    client = LogshareClient("k", "e", dest=io.BytesIO(), base_url=api_base)
    client.get_from_timestamp("z1", 1000, 2000, -1)

    query = Handler.seen[-1]["query"]
    assert "count" not in query
    assert "sample" not in query
    assert "fields" not in query
    assert query["timestamps"] == "unixnano"


def test_fetch_field_names(api_base):
    dest = io.BytesIO()
    client = LogshareClient("k", "e", dest=dest, base_url=api_base)

    meta = client.fetch_field_names("z1")

    assert dest.getvalue() == FIELDS
    assert meta.count == 1
    assert Handler.seen[-1]["path"] == "/zones/z1/logs/received/fields"


def test_error_status_raises_api_error_and_writes_nothing(api_base):
    dest = io.BytesIO()
    client = LogshareClient("k", "e", dest=dest, base_url=api_base)

    with pytest.raises(ApiError) as excinfo:
        client.get_from_timestamp("nope", 1000, 2000, 1)

    assert excinfo.value.status_code == 400
    assert "bad zone" in str(excinfo.value)
    assert dest.getvalue() == b""


def test_build_client_wires_config():
    sink = io.BytesIO()
    cfg = LogshareConfig(
        api_key="k",
        api_email="e",
        zone_id="z1",
        sample=0.3,
        fields=("RayID",),
        timestamp_format="unix",
    )

    client = build_client(cfg, sink)

    assert client.dest is sink
    assert client.fields == ("RayID",)
    assert client.sample == 0.3
    assert client.timestamp_format == "unix"


def test_build_client_defaults_to_stdout(monkeypatch):
    fake_stdout = io.TextIOWrapper(io.BytesIO())
    monkeypatch.setattr("sys.stdout", fake_stdout)
    client = build_client(LogshareConfig(api_key="k", api_email="e"), None)
    assert client.dest is fake_stdout.buffer


def test_build_client_rejects_empty_credentials():
    with pytest.raises(LogshareError, match="api_key cannot be empty"):
        build_client(LogshareConfig(api_key="", api_email="e"), None)
