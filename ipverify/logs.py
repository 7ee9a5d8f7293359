import functools
import inspect
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, ParamSpec, TypeVar, cast, overload

import logfire
import sentry_sdk
import yaml
from loguru import logger
from rich.logging import RichHandler
from sentry_sdk.integrations.loguru import LoguruIntegration

if TYPE_CHECKING:
    from loguru import HandlerConfig, Record

from ipverify.settings import settings


def setup_logging():
    # setup logfire
    if settings.LOGFIRE_TOKEN:
        logfire.configure(
            service_name="ipverify",
            send_to_logfire="if-token-present",
            token=settings.LOGFIRE_TOKEN,
            environment=settings.ENVIRONMENT,
            console=False,
            scrubbing=False,
        )
        logfire.instrument_httpx()

    _setup_logger(settings.LOG_LEVEL, settings.logs_dir, settings.VERBOSE)

    # setup sentry
    if settings.SENTRY_DSN:
        logger.info("Initializing Sentry")
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            integrations=[
                LoguruIntegration(),
            ],
            send_default_pii=False,
        )
    else:
        logger.warning("No SENTRY_DSN provided, Sentry is disabled")


LOG_FILE_TOPICS = frozenset(["verifier", "audit"])


def _setup_logger(level: str, logs_dir: Path | None = None, verbose: bool = False):
    logger.remove()

    rich_handler = RichHandler(rich_tracebacks=True, log_time_format="%X", markup=True)

    def _format_with_extra(record: "Record") -> str:
        message = record["message"]

        extra = {k: v for k, v in record["extra"].items() if k != "decorator_log"}
        if extra:
            dumped = yaml.dump(extra, sort_keys=False, default_flow_style=False)
            dumped_escaped = (
                dumped.rstrip()
                .replace("{", "{{")
                .replace("}", "}}")
                .replace("[", r"\[")
                .replace("<", r"\<")
                .replace(">", r"\>")
            )
            message = f"{message}\n{dumped_escaped}"

        return message

    def _filter_decorator_logs(record: "Record") -> bool:
        """Filter out decorator logs unless in verbose mode."""
        if not verbose and record["extra"].get("decorator_log"):
            return False
        return True

    handlers: list[HandlerConfig] = [
        {
            "sink": rich_handler,
            "format": _format_with_extra,
            "level": level,
            "backtrace": True,
            "diagnose": True,
            "filter": _filter_decorator_logs,
        }
    ]
    if logs_dir:
        logfile = (logs_dir / "verifications.log").as_posix()

        def _filter_for_file(record: "Record") -> bool:
            return record["extra"].get("topic") in LOG_FILE_TOPICS

        handlers.append({
            "sink": logfile,
            "format": "{message}",
            "level": "INFO",
            "rotation": "100 MB",
            "retention": "30 days",
            "serialize": True,
            "enqueue": True,
            "backtrace": True,
            "diagnose": False,
            "filter": _filter_for_file,
        })

    if settings.LOGFIRE_TOKEN:
        handlers.append(logfire.loguru_handler())

    logger.configure(handlers=handlers)

    # Route httpx/httpcore loggers through the same console handler
    for logger_name in ("httpx", "httpcore"):
        lib_logger = logging.getLogger(logger_name)
        lib_logger.handlers.clear()
        lib_logger.addHandler(rich_handler)
        lib_logger.setLevel(logging.WARNING)
        lib_logger.propagate = False


def get_utcnow() -> datetime:
    """Return the current UTC time."""
    return datetime.now(timezone.utc)


def _format_args_kwargs(
    func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> dict[str, str]:
    """Format function arguments for logging."""
    sig = inspect.signature(func)
    bound_args = sig.bind_partial(*args, **kwargs)
    bound_args.apply_defaults()

    formatted: dict[str, str] = {}
    for name, value in bound_args.arguments.items():
        # Truncate long values
        str_value = str(value)
        if len(str_value) > 200:
            str_value = str_value[:200] + "..."
        formatted[name] = str_value

    return formatted


P = ParamSpec("P")
R = TypeVar("R")


@overload
def log_decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]: ...


@overload
def log_decorator(func: Callable[P, R]) -> Callable[P, R]: ...


def log_decorator(
    func: Callable[P, R] | Callable[P, Awaitable[R]],
) -> Callable[P, R] | Callable[P, Awaitable[R]]:
    """Wrap regular or coroutine function with start/finish debug logs.

    Arguments listed in REDACTED_ARGS are never rendered. Exceptions are
    logged, tagged for Sentry and re-raised.

    Usage example:

        @log_decorator
        async def verify(state, ip):
            ...
    """

    def _extra(args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
        extra: dict[str, Any] = {"func": func.__name__, "decorator_log": True}
        try:
            formatted = _format_args_kwargs(func, args, kwargs)
            extra["args"] = {k: v for k, v in formatted.items() if k not in REDACTED_ARGS}
        except Exception:
            # If we can't format args, just skip it
            pass
        return extra

    def _log_error(e: Exception) -> None:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("func", func.__name__)
            sentry_sdk.capture_exception(e)

        logger.exception(
            f"Exception raised in {func.__name__}",
            func=func.__name__,
            error=str(e),
            decorator_log=True,
        )

    @functools.wraps(func)
    def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        extra = _extra(args, kwargs)
        try:
            start = get_utcnow()
            logger.debug(f"Starting {func.__name__}", **extra)
            result = func(*args, **kwargs)
            extra["duration_sec"] = (get_utcnow() - start).total_seconds()
            logger.debug(f"Finished {func.__name__}", **extra)
            return cast(R, result)
        except Exception as e:
            _log_error(e)
            raise

    @functools.wraps(func)
    async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        extra = _extra(args, kwargs)
        try:
            start = get_utcnow()
            logger.debug(f"Starting {func.__name__}", **extra)
            result = await cast(Awaitable[R], func(*args, **kwargs))
            extra["duration_sec"] = (get_utcnow() - start).total_seconds()
            logger.debug(f"Finished {func.__name__}", **extra)
            return result
        except Exception as e:
            _log_error(e)
            raise

    if inspect.iscoroutinefunction(func):
        return async_wrapper  # type: ignore[return-value]
    else:
        return sync_wrapper  # type: ignore[return-value]


# raw addresses and credentials stay out of decorator logs
REDACTED_ARGS = frozenset(["client_ip", "ip", "credential", "resolvers", "payload"])
