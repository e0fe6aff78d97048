from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class ScriptingMode:
    """Run through the platform scripting subsystem (`do shell script`)."""

    run_as_privileged: bool = False

    @property
    def description(self) -> str:
        return "scripting"


@dataclass(frozen=True)
class ProcessMode:
    """Run as a spawned OS process with piped stdio.

    When ``suppress_buffered_output`` is set the output is only published to
    the stream broadcaster and the final result carries no value.
    ``environment`` replaces the inherited environment entirely; leave it
    ``None`` to inherit.
    """

    suppress_buffered_output: bool = True
    environment: Optional[Mapping[str, str]] = field(default=None, hash=False)
    input_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        if self.environment is not None:
            frozen = MappingProxyType({str(k): str(v) for k, v in self.environment.items()})
            object.__setattr__(self, "environment", frozen)

    @property
    def description(self) -> str:
        return "process"


@dataclass(frozen=True)
class UnknownMode:
    @property
    def description(self) -> str:
        return "unknown"


ExecutionMode = Union[ScriptingMode, ProcessMode, UnknownMode]

GENERAL_SCRIPTING = ScriptingMode(run_as_privileged=False)


def general_process(suppress: bool = True) -> ProcessMode:
    return ProcessMode(suppress_buffered_output=suppress)


DEVELOPER_DIR: Mapping[str, str] = MappingProxyType(
    {"DEVELOPER_DIR": "/Applications/Xcode.app/Contents/Developer"}
)
LANG_EN_US: Mapping[str, str] = MappingProxyType({"LANG": "en_US.UTF-8"})


class CommandSeparator(str, Enum):
    COLON = ":"
    POINT = "."
    LOGICAL_OR = "||"
    LOGICAL_AND = "&&"
    OPERATION_OR = "|"
    OPERATION_AND = "&"


@dataclass(frozen=True)
class CommandDescriptor:
    """Immutable description of an external command.

    Builders never mutate a descriptor; ``duplicate`` and ``combine`` return
    new values so a shared template is safe across threads.
    """

    executable_path: Optional[str]
    arguments: Tuple[str, ...] = ()
    mode: ExecutionMode = field(default_factory=UnknownMode)

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(str(a) for a in (self.arguments or ())))

    @property
    def command_line(self) -> str:
        return (self.executable_path or "") + " " + " ".join(self.arguments)

    @property
    def script_source(self) -> str:
        # eg: do shell script "/usr/bin/which git" with administrator privileges
        source = f'do shell script "{self.command_line}"'
        if isinstance(self.mode, ScriptingMode) and self.mode.run_as_privileged:
            return f"{source} with administrator privileges"
        return source

    def duplicate(self, arguments: Optional[Sequence[str]]) -> "CommandDescriptor":
        return CommandDescriptor(
            executable_path=self.executable_path,
            arguments=tuple(arguments or ()),
            mode=self.mode,
        )

    def with_mode(self, mode: ExecutionMode) -> "CommandDescriptor":
        return CommandDescriptor(
            executable_path=self.executable_path,
            arguments=self.arguments,
            mode=mode,
        )

    def combine(
        self,
        other: "CommandDescriptor",
        separator: Optional[CommandSeparator] = None,
    ) -> "CommandDescriptor":
        arguments = list(self.arguments)
        if separator is not None:
            arguments.append(CommandSeparator(separator).value)
        if other.executable_path:
            arguments.append(other.executable_path)
        arguments.extend(other.arguments)
        return self.duplicate(arguments)

