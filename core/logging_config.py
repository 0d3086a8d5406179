"""
Core Module - Logging setup.

Configures the root logger once for CLI runs. Library code only ever
calls ``logging.getLogger(__name__)``.
"""

import json
import logging
import sys
from typing import Optional


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    run_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        run_id: Identifier of the ingestion pass, for tracing

    Returns:
        Configured logger for the ingestion service
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
                "run_id": run_id or "",
            })
        )
    else:
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {run_id or '-'} | %(message)s"
        )

    # stderr keeps stdout free for the JSON report
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # aiohttp access chatter is not useful at INFO
    logging.getLogger("aiohttp").setLevel(max(log_level, logging.WARNING))

    return logging.getLogger("ingestion_service")
