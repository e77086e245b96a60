"""Type definitions for the CLI module."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional


class CLIError(Exception):
    """Base exception for CLI-related errors."""

    pass


class CommandResult:
    """Result of a CLI command execution."""

    def __init__(
        self,
        success: bool,
        message: str = "",
        data: Optional[dict[str, Any]] = None,
        exit_code: int = 0,
    ):
        self.success = success
        self.message = message
        self.data = data or {}
        self.exit_code = exit_code
        self.timestamp = datetime.utcnow()

    def __bool__(self) -> bool:
        return self.success


class CLIContext:
    """Context object for CLI commands."""

    def __init__(
        self,
        verbose: bool = False,
        debug: bool = False,
        config_path: Optional[str] = None,
        ephemeral: bool = False,
    ):
        self.verbose = verbose
        self.debug = debug
        self.config_path = config_path
        self.ephemeral = ephemeral
        self.start_time = datetime.utcnow()


class OutputFormat(str, Enum):
    """Output format options for CLI commands."""

    TABLE = "table"
    JSON = "json"
