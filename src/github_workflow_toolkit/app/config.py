"""Configuration for the workflow toolkit CLI.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Command-line flags take precedence over anything configured here.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

OutputFormat = Literal["table", "json", "github"]
FailOn = Literal["fail", "warn", "never"]

_LIST_SEPARATOR_RE = re.compile(r"[,\n]")


def _split(value: object, separators: re.Pattern[str]) -> object:
    if isinstance(value, str):
        return tuple(part.strip() for part in separators.split(value) if part.strip())
    return value


class ToolkitSettings(BaseSettings):
    """Settings for `workflow-toolkit`.

    Environment variables:
    - LOG_LEVEL                        (optional)
    - WORKFLOW_TOOLKIT_FORMAT          (optional)
    - WORKFLOW_TOOLKIT_FAIL_ON         (optional)
    - WORKFLOW_TOOLKIT_MAX_WORKERS     (optional)
    - WORKFLOW_TOOLKIT_DISABLED_RULES  (optional, comma-separated)
    - WORKFLOW_TOOLKIT_PATTERN_DIRS    (optional, comma or os.pathsep separated)

    Notes:
        Tests can point at a specific env file via
        `ToolkitSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="WARNING",
        validation_alias="LOG_LEVEL",
        description="Root logging level; logs go to stderr",
    )

    output_format: OutputFormat = Field(
        default="table",
        validation_alias="WORKFLOW_TOOLKIT_FORMAT",
        description="Default report format",
    )

    fail_on: FailOn = Field(
        default="fail",
        validation_alias="WORKFLOW_TOOLKIT_FAIL_ON",
        description="Lowest finding severity that makes `lint` exit non-zero",
    )

    max_workers: int = Field(
        default=4,
        gt=0,
        validation_alias="WORKFLOW_TOOLKIT_MAX_WORKERS",
        description="Worker threads used to lint several files",
    )

    disabled_rules: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        validation_alias="WORKFLOW_TOOLKIT_DISABLED_RULES",
        description="Rule ids to skip",
    )

    pattern_dirs: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(),
        validation_alias="WORKFLOW_TOOLKIT_PATTERN_DIRS",
        description="Directories searched for pattern files",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level

    @field_validator("output_format", "fail_on", mode="before")
    @classmethod
    def _lowercase(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("disabled_rules", mode="before")
    @classmethod
    def _split_rules(cls, value: object) -> object:
        return _split(value, _LIST_SEPARATOR_RE)

    @field_validator("pattern_dirs", mode="before")
    @classmethod
    def _split_dirs(cls, value: object) -> object:
        return _split(value, re.compile(rf"[,\n{re.escape(os.pathsep)}]"))
