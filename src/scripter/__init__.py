"""Describe external commands as immutable values and run them.

Typical use::

    from scripter import CommandDescriptor, ProcessMode, build_engine

    engine = build_engine()
    result = engine.execute(CommandDescriptor("/bin/echo", ("hello",), ProcessMode(suppress_buffered_output=False)))
    print(result.string)
"""
from scripter.domain.descriptor import (
    DEVELOPER_DIR,
    GENERAL_SCRIPTING,
    LANG_EN_US,
    CommandDescriptor,
    CommandSeparator,
    ExecutionMode,
    ProcessMode,
    ScriptingMode,
    UnknownMode,
    general_process,
)
from scripter.domain.errors import (
    ExecuteFailed,
    ExecutionError,
    InvalidCommand,
    PathEmpty,
    PathNotExistOrIsDirectory,
    PathPermissionDenied,
    SerializationFailed,
    UnsupportedMode,
)
from scripter.domain.result import Failure, Result, Success, result_of
from scripter.engine import build_engine
from scripter.events.stream import StreamBroadcaster, StreamChunk, StreamSubscription
from scripter.execution.strategy import Dispatcher

__all__ = [
    "CommandDescriptor",
    "CommandSeparator",
    "DEVELOPER_DIR",
    "Dispatcher",
    "ExecuteFailed",
    "ExecutionError",
    "ExecutionMode",
    "Failure",
    "GENERAL_SCRIPTING",
    "InvalidCommand",
    "LANG_EN_US",
    "PathEmpty",
    "PathNotExistOrIsDirectory",
    "PathPermissionDenied",
    "ProcessMode",
    "Result",
    "ScriptingMode",
    "SerializationFailed",
    "StreamBroadcaster",
    "StreamChunk",
    "StreamSubscription",
    "Success",
    "UnknownMode",
    "UnsupportedMode",
    "build_engine",
    "general_process",
    "result_of",
]
