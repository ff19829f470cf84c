# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import logging
from logging import basicConfig, getLogger

log = getLogger("sentinel_installer")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
LOG_FORMAT = "%(levelname)s: %(message)s"
HEADER_WIDTH = 70


def configure_logging(level: str) -> None:
    """Send installer logs to stderr at the given level name. Stdout is reserved for the credential report."""
    basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)


def log_header(message: str):
    """Log a formatted header message."""
    separator = "=" * HEADER_WIDTH
    log.info("\n".join(["", separator, message, separator, ""]))


def log_step(step: int, total: int, message: str):
    log_header(f"STEP {step}/{total}: {message}")
