"""
Logging: structlog for the service, stdlib logging for third-party libraries

Every event carries the bound contextvars (trace_id, account_id) and the
service name. development renders to the console, production emits one
JSON object per line.
"""

import logging
import sys

import structlog

# one line per HTTP request / LLM call at INFO
NOISY_LOGGERS = ("LiteLLM", "httpx", "httpcore")


def _service_name(service: str):
    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def _renderers(env: str) -> list:
    if env == "production":
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(env: str = "development", level: str = "INFO", service: str = "ppc-advisor") -> None:
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _service_name(service),
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            *_renderers(env),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(levelname)s %(name)s %(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
