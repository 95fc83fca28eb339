"""
Logging configuration.

Structured JSON logs by default (one object per line, suited to the hosting
platform's log drain), plain text when LOG_FORMAT=text.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from speakabout.core.environment import env_config, get_log_format

_configured = False


def configure_logging() -> None:
    """Configure the root logger once per process."""
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    root.setLevel(getattr(logging, env_config.get("log_level", "INFO").upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    if get_log_format() == "json":
        formatter = JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # asyncpg is chatty at DEBUG
    logging.getLogger("asyncpg").setLevel(logging.WARNING)

    _configured = True
