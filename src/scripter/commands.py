"""Command path lookup.

A ``ScriptCommand`` names an executable and knows how to find it; a
``CommandLocator`` runs the lookup through the engine and caches the answer in
memory for the life of the process.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence

from scripter.domain.descriptor import CommandDescriptor, ExecutionMode, general_process
from scripter.execution.strategy import Dispatcher

logger = logging.getLogger(__name__)

WHICH_PATH = "/usr/bin/which"
WHEREIS_PATH = "/usr/bin/whereis"

WHEREIS_MANUAL = "-m"
WHEREIS_BINARY = "-b"
WHEREIS_QUIET = "-q"

Fetcher = Callable[[Dispatcher, str], Optional[str]]


def which_command(name: str, mode: Optional[ExecutionMode] = None) -> CommandDescriptor:
    return CommandDescriptor(WHICH_PATH, (name,), mode or general_process(suppress=False))


def whereis_command(
    name: str,
    options: Optional[Sequence[str]] = None,
    mode: Optional[ExecutionMode] = None,
) -> CommandDescriptor:
    arguments = list(options or ())
    arguments.append(name)
    return CommandDescriptor(WHEREIS_PATH, tuple(arguments), mode or general_process(suppress=False))


def _first_line(value: Optional[str]) -> Optional[str]:
    for line in (value or "").splitlines():
        line = line.strip()
        if line:
            return line
    return None


def fetch_by_which(engine: Dispatcher, name: str) -> Optional[str]:
    return _first_line(engine.execute(which_command(name)).string)


def fetch_by_whereis(engine: Dispatcher, name: str) -> Optional[str]:
    # BSD prints bare paths; util-linux prints "name: path ...".
    line = _first_line(engine.execute(whereis_command(name, [WHEREIS_BINARY])).string)
    if line is None:
        return None
    if line.startswith(f"{name}:"):
        parts = line.split(":", 1)[1].split()
        return parts[0] if parts else None
    return line.split()[0]


def fixed_path(path: Optional[str]) -> Fetcher:
    return lambda _engine, _name: path


@dataclass(frozen=True)
class ScriptCommand:
    name: str
    fetcher: Fetcher = field(default=fetch_by_which, compare=False, hash=False)


WHICH = ScriptCommand("which", fixed_path(WHICH_PATH))
WHEREIS = ScriptCommand("whereis", fixed_path(WHEREIS_PATH))


class CommandLocator:
    """Resolves ``ScriptCommand`` paths and remembers them.

    Failed lookups are not cached, so a command installed later is found on
    the next call.
    """

    def __init__(self, engine: Dispatcher) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._paths: Dict[str, str] = {}

    def path(self, command: ScriptCommand) -> Optional[str]:
        with self._lock:
            cached = self._paths.get(command.name)
        if cached is not None:
            return cached
        resolved = command.fetcher(self._engine, command.name)
        if not resolved:
            logger.info("Command %s could not be located", command.name)
            return None
        with self._lock:
            self._paths[command.name] = resolved
        return resolved

    def descriptor(
        self,
        command: ScriptCommand,
        arguments: Sequence[str] = (),
        mode: Optional[ExecutionMode] = None,
    ) -> CommandDescriptor:
        return CommandDescriptor(self.path(command), tuple(arguments), mode or general_process(suppress=False))

    def clear_cache(self) -> None:
        with self._lock:
            self._paths.clear()
