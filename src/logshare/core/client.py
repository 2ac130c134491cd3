from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, BinaryIO, Sequence

from .config import ALL_RECORDS, DEFAULT_TIMESTAMP_FORMAT, LogshareConfig
from .errors import ApiError, LogshareError
from .http_client import HttpClient, StreamResult


API_BASE_URL = "https://api.cloudflare.com/client/v4"


@dataclass(frozen=True)
class FetchMeta:
    status_code: int
    duration_ms: int
    url: str
    count: int


def auth_headers(api_key: str, api_email: str) -> dict[str, str]:
    return {"X-Auth-Key": api_key, "X-Auth-Email": api_email}


class LogshareClient:
    """
    Client for the Enterprise Log Share endpoints.

    Response bodies (newline-delimited JSON) are streamed as-is into dest,
    which defaults to the process stdout.
    """

    def __init__(
        self,
        api_key: str,
        api_email: str,
        *,
        fields: Sequence[str] | None = None,
        dest: BinaryIO | None = None,
        sample: float = 0.0,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
        http: HttpClient | None = None,
        base_url: str = API_BASE_URL,
    ) -> None:
        if not api_key:
            raise LogshareError("api_key cannot be empty")
        if not api_email:
            raise LogshareError("api_email cannot be empty")

        self.fields = tuple(fields or ())
        self.sample = float(sample)
        self.timestamp_format = timestamp_format
        self.base_url = base_url.rstrip("/")
        self._dest = dest
        self._http = http or HttpClient()
        self._headers = auth_headers(api_key, api_email)
        self._headers["Accept-Encoding"] = "gzip"

    @property
    def dest(self) -> BinaryIO:
        return self._dest if self._dest is not None else sys.stdout.buffer

    def _logs_url(self, zone_id: str, suffix: str = "") -> str:
        return f"{self.base_url}/zones/{zone_id}/logs/received{suffix}"

    def build_timestamp_params(self, start: int, end: int, count: int) -> dict[str, Any]:
        params: dict[str, Any] = {"start": int(start), "end": int(end)}
        if count != ALL_RECORDS and count > 0:
            params["count"] = int(count)
        if self.sample:
            params["sample"] = f"{self.sample:.1f}"
        if self.fields:
            params["fields"] = ",".join(self.fields)
        if self.timestamp_format:
            params["timestamps"] = self.timestamp_format
        return params

    def get_from_timestamp(self, zone_id: str, start: int, end: int, count: int) -> FetchMeta:
        return self._fetch(self._logs_url(zone_id), self.build_timestamp_params(start, end, count))

    def fetch_field_names(self, zone_id: str) -> FetchMeta:
        return self._fetch(self._logs_url(zone_id, "/fields"), None)

    def _fetch(self, url: str, params: dict[str, Any] | None) -> FetchMeta:
        dest = self.dest
        res: StreamResult = self._http.stream("GET", url, dest, headers=self._headers, params=params)
        if not res.ok:
            raise ApiError(res.status_code, res.url, res.error_body)
        flush = getattr(dest, "flush", None)
        if callable(flush):
            flush()
        return FetchMeta(
            status_code=res.status_code,
            duration_ms=res.response_time_ms,
            url=res.url,
            count=res.lines,
        )


def build_client(
    config: LogshareConfig,
    sink: BinaryIO | None,
    *,
    http: HttpClient | None = None,
    base_url: str = API_BASE_URL,
) -> LogshareClient:
    return LogshareClient(
        config.api_key,
        config.api_email,
        fields=config.fields,
        dest=sink,
        sample=config.sample,
        timestamp_format=config.timestamp_format,
        http=http,
        base_url=base_url,
    )
