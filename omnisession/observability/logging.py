"""structlog configuration for the session service.

Events are keyed by name (`session_created`, `session_expired_ttl`, ...)
with keyword context. Channel identities are often phone numbers or email
addresses, so PII redaction is on unless the config turns it off.
"""

import logging
import re
import sys
from collections.abc import Mapping
from typing import IO, Any, cast

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from omnisession.config.models.observability import LoggingConfig

REDACTED_KEYS: frozenset[str] = frozenset({
    "access_token",
    "api_key",
    "authorization",
    "bearer",
    "credentials",
    "email",
    "jwt",
    "password",
    "phone",
    "refresh_token",
    "secret",
    "token",
})

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-\(\)]{9,}\d")


class PIIRedactor:
    """Drops secrets by key and masks emails and phone numbers inside values."""

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._scrub_mapping(event_dict))

    def _scrub_mapping(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            key: "[REDACTED]" if key.lower() in REDACTED_KEYS else self._scrub(value)
            for key, value in data.items()
        }

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, str):
            return PHONE_PATTERN.sub("[PHONE]", EMAIL_PATTERN.sub("[EMAIL]", value))
        if isinstance(value, Mapping):
            return self._scrub_mapping(value)
        if isinstance(value, (list, tuple)):
            return [self._scrub(item) for item in value]
        return value


def build_processors(format: str = "json", redact_pii: bool = True) -> list[Processor]:
    """Processor chain: context, level, timestamp, exceptions, redaction, renderer."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]
    if redact_pii:
        processors.append(PIIRedactor())
    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    return number if isinstance(number, int) else logging.INFO


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog globally.

    Args:
        level: Minimum level; unknown names fall back to INFO
        format: "json" or "console"
        redact_pii: Mask emails, phone numbers and secrets
        stream: Output stream, stderr by default
    """
    structlog.configure(
        processors=build_processors(format, redact_pii),
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream or sys.stderr),
        cache_logger_on_first_use=stream is None,
    )


def configure_from_settings(config: LoggingConfig) -> None:
    """Apply the [observability.logging] section."""
    setup_logging(level=config.level, format=config.format, redact_pii=config.redact_pii)


def bind_request_identity(**identifiers: Any) -> None:
    """Attach non-None identifiers to every log line of the current request."""
    structlog.contextvars.bind_contextvars(
        **{key: str(value) for key, value in identifiers.items() if value is not None}
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Module logger; call with __name__."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
