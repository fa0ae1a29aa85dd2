import logging
import os

import structlog

SETTLE_SECONDS = float(os.getenv("STATICLEASE_SETTLE_SECONDS", "1.0"))

# RFC 8415 lifetimes handed out with every IA Address
V6_PREFERRED_LIFETIME = int(os.getenv("STATICLEASE_V6_PREFERRED_LIFETIME", "3600"))
V6_VALID_LIFETIME = int(os.getenv("STATICLEASE_V6_VALID_LIFETIME", "3600"))

LOG_LEVEL = os.getenv("STATICLEASE_LOG_LEVEL", "info")
LOG_JSON = os.getenv("STATICLEASE_LOG_JSON", "0") == "1"

AUTOREFRESH_ARG = "autorefresh"


def configure_logging(level: str = LOG_LEVEL, json_output: bool = LOG_JSON) -> None:
    processors = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
    )


log = structlog.get_logger()
