from __future__ import annotations

import errno
import logging
import os
import select
import signal
import subprocess
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Set

from scripter.domain.descriptor import CommandDescriptor, ProcessMode
from scripter.domain.errors import (
    ExecuteFailed,
    InvalidCommand,
    InvalidReason,
    PathEmpty,
    PathNotExistOrIsDirectory,
    PathPermissionDenied,
    process_failure_reason,
)
from scripter.domain.result import Failure, Result, Success
from scripter.events.stream import StreamBroadcaster
from scripter.execution.strategy import ExecutionStrategy
from scripter.observability.structured_log import log_json
from scripter.util import redact, redact_environment, utf8_chunk_decoder

logger = logging.getLogger(__name__)

READ_CHUNK_BYTES = 4096
POLL_INTERVAL_SEC = 0.2
# How long pipes keep draining after the child is reaped. A descendant that
# inherited stdout can keep it open forever.
DRAIN_GRACE_SEC = 0.5

STDOUT = "stdout"
STDERR = "stderr"


@dataclass(eq=False)
class ProcessHandle:
    """Runtime bookkeeping for one spawned process. Never reused."""

    handle_id: str
    command_line: str
    suppress_buffered_output: bool
    stdout_parts: List[str] = field(default_factory=list)
    stderr_parts: List[str] = field(default_factory=list)
    process: Optional[subprocess.Popen] = None
    returncode: Optional[int] = None
    reaped: threading.Event = field(default_factory=threading.Event)
    drain_deadline: float = 0.0
    exited: threading.Event = field(default_factory=threading.Event)
    threads: List[threading.Thread] = field(default_factory=list)

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    @property
    def completed(self) -> bool:
        return self.exited.is_set()

    @property
    def output(self) -> Optional[str]:
        return "".join(self.stdout_parts) or None

    @property
    def error_output(self) -> Optional[str]:
        return "".join(self.stderr_parts) or None

    def is_running(self) -> bool:
        return self.process is not None and not self.reaped.is_set()

    def drain_expired(self) -> bool:
        return self.reaped.is_set() and time.monotonic() >= self.drain_deadline


def check_process_path(path: Optional[str]) -> Optional[InvalidReason]:
    """Checked fresh on every call; nothing is cached."""
    if not path:
        return PathEmpty()
    if not os.path.exists(path) or os.path.isdir(path):
        return PathNotExistOrIsDirectory(path)
    if not os.access(path, os.X_OK):
        return PathPermissionDenied(path)
    return None


class ProcessRunner(ExecutionStrategy):
    """Runs ``ProcessMode`` descriptors as child processes.

    The calling thread blocks until the child exits. A watcher thread per
    child reaps it, lets the pipe readers drain for at most ``DRAIN_GRACE_SEC``,
    closes the pipes and drops the handle from the in-flight registry. Output
    written later by surviving descendants is discarded.
    """

    def __init__(
        self,
        broadcaster: StreamBroadcaster,
        read_chunk_bytes: int = READ_CHUNK_BYTES,
        next_strategy: Optional[ExecutionStrategy] = None,
    ) -> None:
        super().__init__(next_strategy)
        self._broadcaster = broadcaster
        self._read_chunk_bytes = max(1, int(read_chunk_bytes))
        self._lock = threading.Lock()
        self._in_flight: Set[ProcessHandle] = set()

    def can_handle(self, descriptor: CommandDescriptor) -> bool:
        return isinstance(descriptor.mode, ProcessMode)

    def in_flight(self) -> List[ProcessHandle]:
        with self._lock:
            return list(self._in_flight)

    def run(self, descriptor: CommandDescriptor) -> Result:
        invalid = check_process_path(descriptor.executable_path)
        if invalid is not None:
            return Failure(InvalidCommand(invalid))

        mode: ProcessMode = descriptor.mode  # type: ignore[assignment]
        handle = ProcessHandle(
            handle_id="proc-" + uuid.uuid4().hex[:16],
            command_line=descriptor.command_line,
            suppress_buffered_output=bool(mode.suppress_buffered_output),
        )
        stdin_payload = _read_input_file(mode.input_file_path)

        with self._lock:
            self._in_flight.add(handle)
        try:
            handle.process = subprocess.Popen(
                [str(descriptor.executable_path), *descriptor.arguments],
                stdin=(subprocess.PIPE if stdin_payload else subprocess.DEVNULL),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                shell=False,
                close_fds=True,
                start_new_session=True,
                env=(dict(mode.environment) if mode.environment is not None else None),
            )
        except OSError as exc:
            self._discard(handle)
            log_json(
                logger,
                "process_spawn_failed",
                level=logging.WARNING,
                handle_id=handle.handle_id,
                cmd=redact(handle.command_line),
                error=str(exc),
            )
            return Failure(ExecuteFailed(handle.command_line, f"failed to start process: {exc}"))

        log_json(
            logger,
            "process_spawned",
            handle_id=handle.handle_id,
            pid=handle.pid,
            cmd=redact(handle.command_line),
            env=redact_environment(mode.environment),
        )
        self._start_io(handle, stdin_payload)
        handle.exited.wait()
        return _build_result(handle)

    def on_interrupt(self) -> None:
        self._signal_all(signal.SIGINT, "process_interrupt")

    def on_kill(self) -> None:
        self._signal_all(signal.SIGKILL, "process_kill")

    def _signal_all(self, sig: int, event: str) -> None:
        with self._lock:
            targets = [h for h in self._in_flight if h.is_running()]
            for handle in targets:
                _signal_group(handle.process, sig)
        if targets:
            log_json(logger, event, count=len(targets), handle_ids=[h.handle_id for h in targets])

    def _start_io(self, handle: ProcessHandle, stdin_payload: bytes) -> None:
        proc = handle.process
        assert proc is not None
        pipes = ((proc.stdout, STDOUT, handle.stdout_parts), (proc.stderr, STDERR, handle.stderr_parts))
        for stream, source, parts in pipes:
            if stream is None:
                continue
            os.set_blocking(stream.fileno(), False)
            reader = threading.Thread(
                target=self._drain_pipe,
                args=(handle, stream, source, parts),
                daemon=True,
                name=f"{source}-reader-{proc.pid}",
            )
            handle.threads.append(reader)
            reader.start()
        if stdin_payload and proc.stdin is not None:
            writer = threading.Thread(
                target=_feed_stdin,
                args=(handle, proc.stdin, stdin_payload),
                daemon=True,
                name=f"stdin-writer-{proc.pid}",
            )
            handle.threads.append(writer)
            writer.start()
        watcher = threading.Thread(
            target=self._watch,
            args=(handle,),
            daemon=True,
            name=f"exit-watcher-{proc.pid}",
        )
        watcher.start()

    def _drain_pipe(self, handle: ProcessHandle, stream, source: str, parts: List[str]) -> None:
        fd = stream.fileno()
        decode = utf8_chunk_decoder()
        while not handle.drain_expired():
            try:
                ready, _, _ = select.select([fd], [], [], POLL_INTERVAL_SEC)
            except (OSError, ValueError):
                break
            if not ready:
                if handle.reaped.is_set():
                    break
                continue
            try:
                data = os.read(fd, self._read_chunk_bytes)
            except OSError as exc:
                if exc.errno in {errno.EAGAIN, errno.EWOULDBLOCK}:
                    continue
                break
            if not data:
                break
            self._on_data(handle, source, parts, decode(data, False))
        self._on_data(handle, source, parts, decode(b"", True))

    def _on_data(self, handle: ProcessHandle, source: str, parts: List[str], text: str) -> None:
        if not text:
            return
        if source == STDOUT:
            chunk: Result = Success(text)
        else:
            chunk = Failure(ExecuteFailed(handle.command_line, text))
        self._broadcaster.publish(handle.command_line, source, chunk)
        if handle.suppress_buffered_output:
            return
        parts.append(text.strip())

    def _watch(self, handle: ProcessHandle) -> None:
        proc = handle.process
        assert proc is not None
        handle.returncode = proc.wait()
        handle.drain_deadline = time.monotonic() + DRAIN_GRACE_SEC
        handle.reaped.set()
        for thread in handle.threads:
            thread.join(timeout=max(0.0, handle.drain_deadline + 2 * POLL_INTERVAL_SEC - time.monotonic()))
            if thread.is_alive():
                logger.debug("Closing pipes under busy thread %s", thread.name)
        _close_pipes(proc)
        self._discard(handle)
        log_json(
            logger,
            "process_exited",
            handle_id=handle.handle_id,
            pid=proc.pid,
            returncode=handle.returncode,
        )
        handle.exited.set()

    def _discard(self, handle: ProcessHandle) -> None:
        with self._lock:
            self._in_flight.discard(handle)


def _build_result(handle: ProcessHandle) -> Result:
    if handle.returncode == 0:
        return Success(None if handle.suppress_buffered_output else handle.output)
    reason = process_failure_reason(handle.error_output, int(handle.returncode or 0))
    return Failure(ExecuteFailed(handle.command_line, reason))


def _read_input_file(path: Optional[str]) -> bytes:
    if not path:
        return b""
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as exc:
        logger.warning("Ignoring unreadable input file %s: %s", path, exc)
        return b""


def _feed_stdin(handle: ProcessHandle, stdin, payload: bytes) -> None:
    fd = stdin.fileno()
    os.set_blocking(fd, False)
    view = memoryview(payload)
    try:
        while view and not handle.drain_expired():
            _, ready, _ = select.select([], [fd], [], POLL_INTERVAL_SEC)
            if not ready:
                continue
            try:
                written = os.write(fd, view)
            except BlockingIOError:
                continue
            view = view[written:]
    except OSError as exc:
        # Child exited or closed stdin before reading everything.
        logger.debug("stdin write stopped early: %s", exc)
    finally:
        try:
            stdin.close()
        except OSError:
            pass


def _close_pipes(proc: subprocess.Popen) -> None:
    for stream in (proc.stdin, proc.stdout, proc.stderr):
        if stream is None or stream.closed:
            continue
        try:
            stream.close()
        except OSError:
            pass


def _signal_group(proc: Optional[subprocess.Popen], sig: int) -> None:
    if proc is None:
        return
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        return
    except OSError:
        # Fall back to signaling the process itself if the group is gone.
        try:
            proc.send_signal(sig)
        except OSError:
            return
