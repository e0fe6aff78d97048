import logging
from typing import Optional

from scripter.config import EngineConfig, load_config
from scripter.events.stream import StreamBroadcaster
from scripter.execution.process_runner import ProcessRunner
from scripter.execution.script_runner import OsascriptInterpreter, ScriptInterpreter, ScriptRunner
from scripter.execution.strategy import Dispatcher, UnsupportedStrategy

logger = logging.getLogger(__name__)


def build_engine(
    config: Optional[EngineConfig] = None,
    interpreter: Optional[ScriptInterpreter] = None,
    broadcaster: Optional[StreamBroadcaster] = None,
) -> Dispatcher:
    """Construct the process-wide execution engine.

    Call once at startup and pass the result to whoever executes commands.
    Chain order: scripting, process, unsupported.
    """
    config = config or load_config()
    broadcaster = broadcaster or StreamBroadcaster(queue_size=config.stream_queue_size)
    script_runner = ScriptRunner(interpreter=interpreter or OsascriptInterpreter(config.osascript_path))
    process_runner = ProcessRunner(broadcaster=broadcaster, read_chunk_bytes=config.read_chunk_bytes)
    logger.debug(
        "Execution engine ready (queue_size=%s, read_chunk_bytes=%s)",
        config.stream_queue_size,
        config.read_chunk_bytes,
    )
    return Dispatcher([script_runner, process_runner, UnsupportedStrategy()], broadcaster=broadcaster)
