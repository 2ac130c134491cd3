from __future__ import annotations


class LogshareError(Exception):
    pass


class ConfigError(LogshareError):
    pass


class ZoneLookupError(LogshareError):
    pass


class ZoneResolutionError(LogshareError):
    pass


class StorageError(LogshareError):
    pass


class BucketExistsError(StorageError):
    """Raised by an object store when the bucket to create is already there."""

    def __init__(self, bucket: str) -> None:
        super().__init__(f"bucket already exists: {bucket}")
        self.bucket = bucket


class TransportError(LogshareError):
    pass


class ApiError(LogshareError):
    def __init__(self, status_code: int, url: str, body: str = "") -> None:
        msg = f"HTTP status {status_code}: request failed: {url}"
        if body:
            msg = f"{msg}: {body}"
        super().__init__(msg)
        self.status_code = status_code
        self.url = url
        self.body = body


class FetchError(LogshareError):
    pass


def wrap(context: str, err: BaseException) -> str:
    return f"{context}: {err}"
