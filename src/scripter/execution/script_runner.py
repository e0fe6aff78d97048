from __future__ import annotations

import logging
import re
import subprocess
import threading
import time
from typing import Optional, Protocol

from scripter.domain.descriptor import CommandDescriptor, ScriptingMode
from scripter.domain.errors import ExecuteFailed, InvalidCommand, PathEmpty, interpreter_failure_reason
from scripter.domain.result import Failure, Result, Success
from scripter.execution.strategy import ExecutionStrategy
from scripter.observability.structured_log import log_json
from scripter.util import redact

logger = logging.getLogger(__name__)

DEFAULT_OSASCRIPT_PATH = "/usr/bin/osascript"

# Interpreter message for a `do shell script` that exited non-zero; mapped to Success(None).
NON_ZERO_STATUS_MESSAGE = "The command exited with a non-zero status."

_EXECUTION_ERROR_RE = re.compile(r"execution error:\s*(?P<message>.*?)(?:\s*\((?P<code>-?\d+)\))?\s*$", re.S)

# The embedded interpreter is process-global; concurrent calls corrupt it.
_INTERPRETER_LOCK = threading.Lock()


class InterpreterError(Exception):
    def __init__(self, message: Optional[str], code: Optional[int] = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message or "")


class ScriptInterpreter(Protocol):
    def run(self, source: str) -> str:
        ...


class OsascriptInterpreter:
    """Evaluates AppleScript source with the ``osascript`` binary."""

    def __init__(self, executable: str = DEFAULT_OSASCRIPT_PATH) -> None:
        self._executable = executable

    def run(self, source: str) -> str:
        try:
            proc = subprocess.run(
                [self._executable, "-e", source],
                capture_output=True,
                text=True,
                shell=False,
                check=False,
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            raise InterpreterError(f"scripting interpreter not found: {self._executable}") from None
        except OSError as exc:
            raise InterpreterError(f"failed to start scripting interpreter: {exc}") from exc

        if proc.returncode == 0:
            out = proc.stdout or ""
            return out[:-1] if out.endswith("\n") else out
        message, code = parse_execution_error(proc.stderr or "")
        raise InterpreterError(message, code)


def parse_execution_error(stderr_text: str) -> tuple[Optional[str], Optional[int]]:
    """Split ``0:42: execution error: <message> (<code>)`` into message and code."""
    text = (stderr_text or "").strip()
    if not text:
        return None, None
    match = _EXECUTION_ERROR_RE.search(text)
    if match is None:
        return text, None
    code = match.group("code")
    return match.group("message").strip() or None, (int(code) if code is not None else None)


class ScriptRunner(ExecutionStrategy):
    """Runs ``ScriptingMode`` descriptors through the scripting interpreter.

    Every call holds the interpreter lock for its whole duration, so scripting
    commands never run concurrently. Calls cannot be preempted; ``interrupt``
    has nothing to cancel here.
    """

    def __init__(
        self,
        interpreter: Optional[ScriptInterpreter] = None,
        lock: Optional[threading.Lock] = None,
        next_strategy: Optional[ExecutionStrategy] = None,
    ) -> None:
        super().__init__(next_strategy)
        self._interpreter = interpreter or OsascriptInterpreter()
        self._lock = lock or _INTERPRETER_LOCK

    def can_handle(self, descriptor: CommandDescriptor) -> bool:
        return isinstance(descriptor.mode, ScriptingMode)

    def run(self, descriptor: CommandDescriptor) -> Result:
        if not descriptor.executable_path:
            return Failure(InvalidCommand(PathEmpty()))

        source = descriptor.script_source
        started = time.monotonic()
        with self._lock:
            try:
                output = self._interpreter.run(source)
            except InterpreterError as exc:
                output = None
                error = exc
            else:
                error = None
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if error is None:
            log_json(logger, "script_executed", cmd=redact(descriptor.command_line), elapsed_ms=elapsed_ms, ok=True)
            return Success(output)

        if error.message and NON_ZERO_STATUS_MESSAGE in error.message:
            log_json(logger, "script_executed", cmd=redact(descriptor.command_line), elapsed_ms=elapsed_ms, ok=True)
            return Success(None)

        log_json(
            logger,
            "script_executed",
            level=logging.WARNING,
            cmd=redact(descriptor.command_line),
            elapsed_ms=elapsed_ms,
            ok=False,
            code=error.code,
        )
        return Failure(ExecuteFailed(descriptor.command_line, interpreter_failure_reason(error.message, error.code)))
