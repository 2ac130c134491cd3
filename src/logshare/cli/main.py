from __future__ import annotations

import argparse
import signal
import sys
import time
from contextlib import ExitStack
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Callable

from logshare.core.client import build_client
from logshare.core.config import (
    ALL_RECORDS,
    DEFAULT_TIMESTAMP_FORMAT,
    TIMESTAMP_FORMATS,
    LogshareConfig,
    parse_fields,
    validate_config,
)
from logshare.core.errors import ConfigError, LogshareError
from logshare.core.http_client import HttpClient
from logshare.core.runner import run_loop, run_once
from logshare.core.storage import OutputSink, create_output_sink
from logshare.core.zones import CloudflareZoneLookup, resolve_zone_id
from logshare.utils.logging import DEFAULT_LOG_FILE, LOG_LEVELS, configure_logging, get_logger


DEFAULT_START_OFFSET = 30 * 60
DEFAULT_END_OFFSET = 20 * 60
DEFAULT_LOOP_WAIT = 60
CHECKPOINT_TYPES = ("timestamp", "ray-id")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _get_version() -> str:
    try:
        return version("logshare-cli")
    except PackageNotFoundError:
        return "0.0.0"


def config_from_args(args: argparse.Namespace, *, now: float | None = None) -> LogshareConfig:
    now = time.time() if now is None else now
    start_time = args.start_time if args.start_time is not None else int(now - DEFAULT_START_OFFSET)
    end_time = args.end_time if args.end_time is not None else int(now - DEFAULT_END_OFFSET)
    return LogshareConfig(
        api_key=(args.api_key or "").strip(),
        api_email=(args.api_email or "").strip(),
        zone_id=(args.zone_id or "").strip(),
        zone_name=(args.zone_name or "").strip(),
        start_time=int(start_time),
        end_time=int(end_time),
        count=int(args.count),
        sample=float(args.sample),
        fields=parse_fields(args.fields),
        list_fields=bool(args.list_fields),
        google_storage_bucket=(args.google_storage_bucket or "").strip(),
        google_project_id=(args.google_project_id or "").strip(),
        timestamp_format=str(args.timestamp_format),
    )


def _configure_runtime_logging(args: argparse.Namespace) -> None:
    enable_file = not bool(getattr(args, "no_log_file", False))
    file_path = configure_logging(
        level=str(getattr(args, "log_level", "INFO")),
        log_file=str(getattr(args, "log_file", DEFAULT_LOG_FILE)),
        enable_file=enable_file,
    )
    logger = get_logger(__name__)
    if file_path:
        logger.debug("log file enabled: %s", file_path)
    else:
        logger.debug("log file disabled")


def _non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from e
    if n < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {n}")
    return n


def _raise_interrupt(signum: int, frame: Any) -> None:
    del frame
    raise KeyboardInterrupt(f"received signal {signum}")


def _install_sigterm_handler(stack: ExitStack) -> None:
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    stack.callback(signal.signal, signal.SIGTERM, previous)


def _close_sink(sink: OutputSink, logger: Any) -> None:
    logger.debug("closing gs://%s/%s", sink.bucket, sink.object_name)
    sink.close()


def _run_command(
    args: argparse.Namespace,
    *,
    command: str,
    work: Callable[[LogshareConfig, Any, ExitStack], None],
) -> int:
    _configure_runtime_logging(args)
    logger = get_logger(f"{__name__}.{command}")

    try:
        with ExitStack() as stack:
            _install_sigterm_handler(stack)
            config = config_from_args(args)
            validate_config(config)

            http = HttpClient()
            stack.callback(http.close)

            lookup = CloudflareZoneLookup(config.api_key, config.api_email, http=http)
            config = replace(config, zone_id=resolve_zone_id(config, lookup, logger=logger))

            sink = create_output_sink(config, config.zone_id, logger=logger)
            if sink is not None:
                stack.callback(_close_sink, sink, logger)

            client = build_client(config, sink, http=http)
            logger.info("command start: %s zone=%s", command, config.zone_id)
            work(config, client, stack)
        logger.info("command done: %s", command)
        return EXIT_OK
    except ConfigError as e:
        logger.error("usage error: %s", e)
        print_usage = getattr(args, "print_usage", None)
        if callable(print_usage):
            print_usage(sys.stderr)
        return EXIT_FAILURE
    except LogshareError as e:
        logger.error("%s", e)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("interrupted, shutting down")
        return EXIT_INTERRUPTED
    except Exception:
        logger.exception("command failed: %s", command)
        return EXIT_FAILURE


def _add_runtime_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="INFO",
        help="Console log level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=str(DEFAULT_LOG_FILE),
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Disable file logging and only log to console",
    )


def _add_fetch_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--api-key", default="", help="Your Cloudflare API key")
    parser.add_argument(
        "--api-email",
        default="",
        help="The email address associated with your Cloudflare API key and account",
    )
    parser.add_argument("--zone-id", default="", help="The zone ID of the zone you are requesting logs for")
    parser.add_argument(
        "--zone-name",
        default="",
        help="The name of the zone you are requesting logs for. The zone ID is looked up from the Cloudflare API",
    )
    parser.add_argument(
        "--start-time",
        type=int,
        default=None,
        help="The timestamp (in Unix seconds) to request logs from (default: 30 minutes ago)",
    )
    parser.add_argument(
        "--end-time",
        type=int,
        default=None,
        help="The timestamp (in Unix seconds) to request logs to (default: 20 minutes ago)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=1,
        help=f"The number of logs to retrieve. Pass '{ALL_RECORDS}' to retrieve all logs for the time period (default: 1)",
    )
    parser.add_argument(
        "--sample",
        type=float,
        default=0.0,
        help="The sampling rate from 0.1 (10%%) to 0.9 (90%%) to use when retrieving logs (default: 0, no sampling)",
    )
    parser.add_argument(
        "--timestamp-format",
        choices=TIMESTAMP_FORMATS,
        default=DEFAULT_TIMESTAMP_FORMAT,
        help=f"The timestamp format to use in logs (default: {DEFAULT_TIMESTAMP_FORMAT})",
    )
    parser.add_argument(
        "--fields",
        action="append",
        default=None,
        help="Comma-separated list of log fields to retrieve (repeatable)",
    )
    parser.add_argument(
        "--list-fields",
        action="store_true",
        help="List the available log fields for use with the --fields flag",
    )
    parser.add_argument(
        "--google-storage-bucket",
        default="",
        help="Google Cloud Storage bucket to upload logs to (gs:// prefix optional)",
    )
    parser.add_argument(
        "--google-project-id",
        default="",
        help="Project ID of the Google Cloud Storage bucket to upload logs to",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logshare-cli",
        description="Fetch request logs from Cloudflare's Enterprise Log Share API",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_get_version()}")
    _add_fetch_options(parser)
    _add_runtime_options(parser)

    def _fetch_cmd(args: argparse.Namespace) -> int:
        def _work(config: LogshareConfig, client: Any, stack: ExitStack) -> None:
            del stack
            run_once(config, client, logger=get_logger(f"{__name__}.fetch"))

        return _run_command(args, command="fetch", work=_work)

    parser.set_defaults(func=_fetch_cmd, print_usage=parser.print_usage)

    subparsers = parser.add_subparsers(dest="command")
    loop = subparsers.add_parser("loop", help="Fetch logs in loop mode")
    loop.add_argument(
        "--loop-wait",
        type=_non_negative_int,
        default=DEFAULT_LOOP_WAIT,
        help=f"The number of seconds to wait after every loop cycle (default: {DEFAULT_LOOP_WAIT})",
    )
    loop.add_argument(
        "--checkpoint",
        choices=CHECKPOINT_TYPES,
        default="timestamp",
        help="The type of checkpoint to use (default: timestamp)",
    )

    def _loop_cmd(args: argparse.Namespace) -> int:
        def _work(config: LogshareConfig, client: Any, stack: ExitStack) -> None:
            logger = get_logger(f"{__name__}.loop")
            logger.debug("checkpoint=%s (not applied)", args.checkpoint)
            del stack
            run_loop(config, client, args.loop_wait, logger=logger)

        return _run_command(args, command="loop", work=_work)

    loop.set_defaults(func=_loop_cmd)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
