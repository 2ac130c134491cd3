from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .errors import ConfigError


ALL_RECORDS = -1
TIMESTAMP_FORMATS = ("unix", "unixnano", "rfc3339")
DEFAULT_TIMESTAMP_FORMAT = "unixnano"
SAMPLE_MIN = 0.1
SAMPLE_MAX = 0.9


@dataclass(frozen=True)
class LogshareConfig:
    api_key: str = ""
    api_email: str = ""
    zone_id: str = ""
    zone_name: str = ""
    start_time: int = 0
    end_time: int = 0
    count: int = 1
    sample: float = 0.0
    fields: tuple[str, ...] = field(default_factory=tuple)
    list_fields: bool = False
    google_storage_bucket: str = ""
    google_project_id: str = ""
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT

    @property
    def uses_storage(self) -> bool:
        return bool(self.google_storage_bucket)


def parse_fields(values: Iterable[str] | None) -> tuple[str, ...]:
    """
    Flatten repeated / comma-separated --fields values into an ordered set.

    ["a,b", "c", "a"] -> ("a", "b", "c")
    """
    out: list[str] = []
    seen: set[str] = set()
    for raw in values or []:
        for part in str(raw).split(","):
            name = part.strip()
            if name and name not in seen:
                out.append(name)
                seen.add(name)
    return tuple(out)


def validate_config(config: LogshareConfig) -> None:
    if not config.api_key or not config.api_email:
        raise ConfigError("must provide both api-key and api-email")

    if not config.zone_id and not config.zone_name:
        raise ConfigError("zone-name OR zone-id must be set")

    if config.sample != 0.0 and not (SAMPLE_MIN <= config.sample <= SAMPLE_MAX):
        raise ConfigError(f"sample must be between {SAMPLE_MIN} and {SAMPLE_MAX}")

    if bool(config.google_storage_bucket) != bool(config.google_project_id):
        raise ConfigError(
            "both google-storage-bucket and google-project-id must be provided to upload to Google Storage"
        )

    if config.timestamp_format not in TIMESTAMP_FORMATS:
        raise ConfigError(
            f"timestamp-format must be one of {', '.join(TIMESTAMP_FORMATS)} (got {config.timestamp_format!r})"
        )

    if config.count != ALL_RECORDS and config.count <= 0:
        raise ConfigError(f"count must be a positive integer or {ALL_RECORDS} for all logs")
