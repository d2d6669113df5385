"""Logging configuration for the face authentication engine.

Events carry scores, counts and identity ids as key/value fields. Raw face
data never reaches a handler: numpy arrays in an event are reduced to their
shape and dtype before rendering.
"""
import logging
import sys
from typing import Any, List, Optional

import numpy as np
import structlog
from structlog.stdlib import ProcessorFormatter

from faceauth.core.config import Settings, settings

QUIET_LOGGERS = ("onnxruntime", "multipart")


def _summarize(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return f"<ndarray shape={value.shape} dtype={value.dtype}>"
    if isinstance(value, (list, tuple)) and any(isinstance(item, np.ndarray) for item in value):
        return [_summarize(item) for item in value]
    return value


def summarize_arrays(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """Replace array values (embeddings, image tensors) with a shape/dtype summary."""
    for key, value in list(event_dict.items()):
        event_dict[key] = _summarize(value)
    return event_dict


def _renderer(config: Settings) -> structlog.types.Processor:
    if config.ENVIRONMENT == "development":
        return structlog.dev.ConsoleRenderer(colors=True)
    return structlog.processors.JSONRenderer()


def setup_logging(config: Optional[Settings] = None) -> None:
    """Route structlog through the standard logging root handler.

    Args:
        config: Settings supplying ENVIRONMENT and LOG_LEVEL; the module
            settings when omitted. Development renders colored console
            lines, every other environment renders JSON.
    """
    config = config or settings

    shared_processors: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        summarize_arrays,
    ]
    if config.ENVIRONMENT != "development":
        shared_processors.append(structlog.processors.format_exc_info)
    shared_processors.append(ProcessorFormatter.wrap_for_formatter)

    structlog.configure(
        processors=shared_processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processor=_renderer(config)))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

    logging.getLogger("uvicorn.error").propagate = False
    logging.getLogger("uvicorn.access").disabled = True
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(
        f"Logging configured. Environment: {config.ENVIRONMENT}, Level: {config.LOG_LEVEL}"
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to `name` (typically __name__)."""
    return structlog.get_logger(name)
