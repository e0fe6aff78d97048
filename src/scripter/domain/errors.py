from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

UNKNOWN_ERROR = "unknown error"
REASON_EXIT = "exit"
REASON_UNCAUGHT_SIGNAL = "uncaught-signal"


@dataclass(frozen=True)
class PathEmpty:
    def __str__(self) -> str:
        return "path is empty"


@dataclass(frozen=True)
class PathNotExistOrIsDirectory:
    path: str

    def __str__(self) -> str:
        return f"{self.path} does not exist or is a directory"


@dataclass(frozen=True)
class PathPermissionDenied:
    path: str

    def __str__(self) -> str:
        return f"{self.path} is not executable (permission denied)"


InvalidReason = Union[PathEmpty, PathNotExistOrIsDirectory, PathPermissionDenied]


class ExecutionError(Exception):
    """Base class for every failure carried by a ``Failure`` result."""


class UnsupportedMode(ExecutionError):
    def __init__(self, mode) -> None:
        self.mode = mode
        super().__init__(f"unsupported execution mode: {getattr(mode, 'description', 'unknown')}")


class InvalidCommand(ExecutionError):
    def __init__(self, reason: InvalidReason) -> None:
        self.reason = reason
        super().__init__(f"invalid command: {reason}")


class ExecuteFailed(ExecutionError):
    def __init__(self, command_line: str, reason: str) -> None:
        self.command_line = command_line
        self.reason = reason
        super().__init__(f"{command_line} failed: {reason}")


class SerializationFailed(ExecutionError):
    """Decoding a successful result's output failed.

    ``reason`` is either the upstream ``ExecutionError`` (the command itself
    failed) or the exception raised by the decoder.
    """

    def __init__(self, reason: Optional[BaseException]) -> None:
        self.reason = reason
        super().__init__(str(reason) if reason is not None else UNKNOWN_ERROR)


def process_failure_reason(stderr_text: Optional[str], returncode: int) -> str:
    """Build the ExecuteFailed reason for a process that exited non-zero.

    Popen reports death by signal ``N`` as ``-N``.
    """
    if returncode < 0:
        code, reason = -returncode, REASON_UNCAUGHT_SIGNAL
    else:
        code, reason = returncode, REASON_EXIT
    return f"{stderr_text or UNKNOWN_ERROR} [code: {code}] [reason: {reason}]"


def interpreter_failure_reason(message: Optional[str], code: Optional[int]) -> str:
    text = message or UNKNOWN_ERROR
    if code is None:
        return text
    return f"{text} [code: {code}]"
