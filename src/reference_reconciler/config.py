"""Environment-driven settings and logging setup."""
from __future__ import annotations

import os
import sys

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, field_validator

PACKAGE_NAME = "reference_reconciler"


class Settings(BaseModel):
    default_style: str = "apa"
    export_basename: str = "references"
    log_level: str = "WARNING"

    @field_validator("default_style")
    @classmethod
    def known_style(cls, value: str) -> str:
        from .formatter import CitationStyle

        style = CitationStyle.parse(value)
        return style.value if style else "apa"

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.strip().upper() or "WARNING"

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "Settings":
        """Read settings from the environment, loading a ``.env`` file first."""
        load_dotenv(dotenv_path)
        return cls(
            default_style=os.getenv("REFCHECK_DEFAULT_STYLE", "apa"),
            export_basename=os.getenv("REFCHECK_EXPORT_BASENAME", "references"),
            log_level=os.getenv("REFCHECK_LOG_LEVEL", "WARNING"),
        )


def configure_logging(level: str = "WARNING") -> int:
    """Enable engine logging on stderr and return the loguru sink id."""
    logger.enable(PACKAGE_NAME)
    return logger.add(
        sys.stderr,
        level=level.upper(),
        filter=PACKAGE_NAME,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
    )
