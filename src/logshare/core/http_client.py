from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, BinaryIO, Mapping

import requests

from .errors import TransportError


_DEFAULT_UA = "logshare-cli/0.1 (+https://github.com/cloudflare/logshare)"
_CHUNK_SIZE = 16_384


@dataclass
class StreamResult:
    url: str
    status_code: int
    bytes_written: int
    lines: int
    response_time_ms: int
    error_body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class JsonResponse:
    url: str
    status_code: int
    data: Any
    response_time_ms: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


class HttpClient:
    """
    Shared HTTP layer for the Cloudflare API calls:
    - one requests.Session with default headers
    - streamed response bodies copied into a binary destination
    - request failures raised as TransportError (no retries)
    """

    def __init__(
        self,
        timeout: float | None = None,
        verify_tls: bool = True,
        headers: Mapping[str, str] | None = None,
        max_error_bytes: int = 4096,
    ) -> None:
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.max_error_bytes = max_error_bytes

        self._session = requests.Session()
        base_headers = {"User-Agent": _DEFAULT_UA, "Accept": "*/*"}
        if headers:
            base_headers.update(dict(headers))
        self._headers = base_headers

    def close(self) -> None:
        self._session.close()

    def _merge_headers(self, headers: Mapping[str, str] | None) -> dict[str, str]:
        merged = dict(self._headers)
        if headers:
            merged.update(dict(headers))
        return merged

    def stream(
        self,
        method: str,
        url: str,
        dest: BinaryIO,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> StreamResult:
        """
        Send a request and copy a 2xx body into dest chunk by chunk.

        Newline-terminated records are counted; a trailing record without a
        newline counts as one more. Non-2xx bodies are not written, their head
        is kept in error_body instead.
        """
        method = (method or "GET").upper().strip()
        start = time.perf_counter()
        try:
            with self._session.request(
                method=method,
                url=url,
                timeout=self.timeout,
                verify=self.verify_tls,
                headers=self._merge_headers(headers),
                params=dict(params) if params else None,
                stream=True,
            ) as r:
                final_url = str(getattr(r, "url", None) or url)
                status = int(getattr(r, "status_code", 0) or 0)

                if not 200 <= status < 300:
                    head = _read_head(r, self.max_error_bytes)
                    return StreamResult(
                        url=final_url,
                        status_code=status,
                        bytes_written=0,
                        lines=0,
                        response_time_ms=_elapsed_ms(start),
                        error_body=head.decode("utf-8", errors="replace").strip(),
                    )

                total = 0
                lines = 0
                last = b""
                for chunk in r.iter_content(chunk_size=_CHUNK_SIZE):
                    if not chunk:
                        continue
                    dest.write(chunk)
                    total += len(chunk)
                    lines += chunk.count(b"\n")
                    last = chunk[-1:]
                if total and last != b"\n":
                    lines += 1

                return StreamResult(
                    url=final_url,
                    status_code=status,
                    bytes_written=total,
                    lines=lines,
                    response_time_ms=_elapsed_ms(start),
                )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url}: {type(e).__name__}: {e}") from e

    def request_json(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> JsonResponse:
        method = (method or "GET").upper().strip()
        start = time.perf_counter()
        try:
            r = self._session.request(
                method=method,
                url=url,
                timeout=self.timeout,
                verify=self.verify_tls,
                headers=self._merge_headers(headers),
                params=dict(params) if params else None,
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {url}: {type(e).__name__}: {e}") from e

        try:
            data = r.json()
        except ValueError:
            data = None
        return JsonResponse(
            url=str(r.url or url),
            status_code=int(r.status_code or 0),
            data=data,
            response_time_ms=_elapsed_ms(start),
        )


def _read_head(r: Any, max_bytes: int) -> bytes:
    chunks: list[bytes] = []
    total = 0
    for chunk in r.iter_content(chunk_size=_CHUNK_SIZE):
        if not chunk:
            continue
        remain = max_bytes - total
        if remain <= 0:
            break
        chunks.append(chunk[:remain])
        total += len(chunks[-1])
    return b"".join(chunks)
