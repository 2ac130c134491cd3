from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from logshare.utils.logging import get_logger

from .client import FetchMeta
from .config import LogshareConfig
from .errors import FetchError, wrap


class LogFetcher(Protocol):
    def fetch_field_names(self, zone_id: str) -> FetchMeta: ...

    def get_from_timestamp(self, zone_id: str, start: int, end: int, count: int) -> FetchMeta: ...


def dispatch_fetch(config: LogshareConfig, client: LogFetcher) -> FetchMeta:
    """Run exactly one fetch: field enumeration if list_fields is set, else the time-range fetch."""
    if config.list_fields:
        try:
            return client.fetch_field_names(config.zone_id)
        except Exception as e:
            raise FetchError(wrap("failed to fetch field names", e)) from e

    try:
        return client.get_from_timestamp(config.zone_id, config.start_time, config.end_time, config.count)
    except Exception as e:
        raise FetchError(wrap("failed to fetch via timestamp", e)) from e


def log_fetch_meta(meta: FetchMeta, logger: logging.Logger) -> None:
    logger.info("HTTP status %d | %dms | %s", meta.status_code, meta.duration_ms, meta.url)
    logger.info("Retrieved %d logs", meta.count)


def run_once(
    config: LogshareConfig,
    client: LogFetcher,
    *,
    logger: logging.Logger | None = None,
) -> FetchMeta:
    log = logger or get_logger(__name__)
    meta = dispatch_fetch(config, client)
    log_fetch_meta(meta, log)
    return meta


def run_loop(
    config: LogshareConfig,
    client: LogFetcher,
    interval: float,
    *,
    sleep: Callable[[float], None] = time.sleep,
    logger: logging.Logger | None = None,
) -> None:
    """
    Fetch, log, sleep, forever.

    A failed iteration is logged and the loop carries on; every iteration
    reuses the same start/end window from config. Only an exception escaping
    sleep (e.g. KeyboardInterrupt) ends it.
    """
    log = logger or get_logger(__name__)
    iteration = 0
    while True:
        iteration += 1
        log.debug("loop iteration %d", iteration)
        try:
            run_once(config, client, logger=log)
        except Exception as e:
            log.error("%s", e)
        log.info("sleeping for %s seconds", interval)
        sleep(interval)
