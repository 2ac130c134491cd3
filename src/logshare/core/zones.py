from __future__ import annotations

import logging
from typing import Any, Callable

from logshare.utils.logging import get_logger

from .client import API_BASE_URL, auth_headers
from .config import LogshareConfig
from .errors import ZoneLookupError, ZoneResolutionError, wrap
from .http_client import HttpClient


ZoneLookup = Callable[[str], str]


class CloudflareZoneLookup:
    """
    Resolve a zone name to its id via GET /zones?name=<name>.

    Only an exact (case-insensitive) name match in the result list counts.
    """

    def __init__(
        self,
        api_key: str,
        api_email: str,
        *,
        http: HttpClient | None = None,
        base_url: str = API_BASE_URL,
    ) -> None:
        self._http = http or HttpClient()
        self._headers = auth_headers(api_key, api_email)
        self.base_url = base_url.rstrip("/")

    def __call__(self, zone_name: str) -> str:
        res = self._http.request_json(
            "GET",
            f"{self.base_url}/zones",
            headers=self._headers,
            params={"name": zone_name},
        )
        data: Any = res.data if isinstance(res.data, dict) else {}

        if not res.ok or data.get("success") is False:
            raise ZoneLookupError(
                f"zone lookup failed with HTTP status {res.status_code}: {_api_errors(data) or 'no details'}"
            )

        wanted = (zone_name or "").strip().lower()
        for zone in data.get("result") or []:
            if not isinstance(zone, dict):
                continue
            if str(zone.get("name") or "").lower() == wanted and zone.get("id"):
                return str(zone["id"])

        raise ZoneLookupError(f"zone could not be found: {zone_name}")


def _api_errors(data: dict[str, Any]) -> str:
    out: list[str] = []
    for e in data.get("errors") or []:
        if isinstance(e, dict):
            out.append(f"{e.get('code')}: {e.get('message')}")
        else:
            out.append(str(e))
    return "; ".join(out)


def resolve_zone_id(
    config: LogshareConfig,
    lookup: ZoneLookup,
    *,
    logger: logging.Logger | None = None,
) -> str:
    if config.zone_id:
        return config.zone_id

    log = logger or get_logger(__name__)
    try:
        zone_id = lookup(config.zone_name)
    except Exception as e:
        raise ZoneResolutionError(wrap("could not find a zone for the given name/ID", e)) from e

    log.debug("resolved zone %s -> %s", config.zone_name, zone_id)
    return zone_id
