import argparse
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from scripter.commands import CommandLocator, ScriptCommand
from scripter.config import DEFAULT_CONFIG_DIR, EngineConfig, get_env_path, load_config
from scripter.domain.descriptor import CommandDescriptor, ProcessMode, ScriptingMode
from scripter.domain.result import Result
from scripter.engine import build_engine
from scripter.events.stream import StreamSubscription
from scripter.execution.strategy import Dispatcher


def _configure_logging(level: str) -> None:
    level = (level or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_config(config_dir: Path, config: EngineConfig) -> None:
    print(f"Config dir: {config_dir}")
    print(f"Env file: {get_env_path(config_dir)}")
    print(f"Stream queue size: {config.stream_queue_size}")
    print(f"Read chunk bytes: {config.read_chunk_bytes}")
    print(f"osascript path: {config.osascript_path}")


def parse_env_pairs(pairs: Optional[Sequence[str]]) -> Optional[Dict[str, str]]:
    if not pairs:
        return None
    env: Dict[str, str] = {}
    for raw in pairs:
        if "=" not in raw:
            raise ValueError(f"expected KEY=VALUE, got: {raw}")
        key, value = raw.split("=", 1)
        if not key.strip():
            raise ValueError(f"empty variable name in: {raw}")
        env[key.strip()] = value
    return env


def _print_stream(subscription: StreamSubscription, stop: threading.Event) -> None:
    while True:
        chunk = subscription.get(timeout=0.1)
        if chunk is None:
            if stop.is_set():
                return
            continue
        target = sys.stdout if chunk.source == "stdout" else sys.stderr
        text = chunk.result.string if chunk.result.is_success else chunk.result.error.reason
        target.write(text or "")
        target.flush()


def run_descriptor(engine: Dispatcher, descriptor: CommandDescriptor, stream: bool = False) -> Result:
    """Execute on a worker thread; Ctrl-C interrupts, a second Ctrl-C kills."""
    holder: List[Result] = []
    subscription = engine.stream() if stream else None
    stop = threading.Event()
    printer = None
    if subscription is not None:
        printer = threading.Thread(target=_print_stream, args=(subscription, stop), daemon=True)
        printer.start()

    worker = threading.Thread(target=lambda: holder.append(engine.execute(descriptor)), daemon=True)
    worker.start()
    interrupts = 0
    while worker.is_alive():
        try:
            worker.join(timeout=0.2)
        except KeyboardInterrupt:
            interrupts += 1
            if interrupts == 1:
                print("Interrupting...", file=sys.stderr)
                engine.interrupt()
            else:
                print("Killing...", file=sys.stderr)
                engine.kill()

    stop.set()
    if printer is not None:
        printer.join(timeout=2)
    if subscription is not None:
        subscription.close()
    return holder[0]


def _report(result: Result, streamed: bool) -> int:
    if result.is_success:
        if result.string and not streamed:
            print(result.string)
        return 0
    print(str(result.error), file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scripter", description="Run external commands through the scripter engine")
    parser.add_argument(
        "--config-dir",
        default=str(DEFAULT_CONFIG_DIR),
        help="Directory holding the .env config (default: ~/.config/scripter)",
    )
    parser.add_argument("--print-config", action="store_true", help="Print active config summary")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run PATH as a child process")
    run.add_argument("--stream", action="store_true", help="Print output chunks as they arrive")
    run.add_argument("--suppress-output", action="store_true", help="Do not buffer output into the result")
    run.add_argument("--env", action="append", metavar="KEY=VALUE", help="Replace the environment (repeatable)")
    run.add_argument("--input", default=None, help="File fed to the child's stdin")
    run.add_argument("path")
    run.add_argument("args", nargs=argparse.REMAINDER)

    script = sub.add_parser("script", help="Run PATH through the scripting subsystem")
    script.add_argument("--privileged", action="store_true", help="Run with administrator privileges")
    script.add_argument("path")
    script.add_argument("args", nargs=argparse.REMAINDER)

    which = sub.add_parser("which", help="Locate a command")
    which.add_argument("name")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config_dir = Path(args.config_dir).expanduser().resolve()
    config = load_config(config_dir)

    _configure_logging(args.log_level or os.environ.get("LOG_LEVEL") or config.log_level)

    if args.print_config:
        _print_config(config_dir, config)
        return 0
    if not args.command:
        parser.print_help()
        return 2

    engine = build_engine(config)

    if args.command == "which":
        path = CommandLocator(engine).path(ScriptCommand(args.name))
        if not path:
            print(f"{args.name} not found", file=sys.stderr)
            return 1
        print(path)
        return 0

    if args.command == "script":
        descriptor = CommandDescriptor(args.path, tuple(args.args), ScriptingMode(run_as_privileged=args.privileged))
        return _report(run_descriptor(engine, descriptor), streamed=False)

    try:
        environment = parse_env_pairs(args.env)
    except ValueError as exc:
        parser.error(str(exc))
    mode = ProcessMode(
        suppress_buffered_output=args.suppress_output,
        environment=environment,
        input_file_path=args.input,
    )
    descriptor = CommandDescriptor(args.path, tuple(args.args), mode)
    return _report(run_descriptor(engine, descriptor, stream=args.stream), streamed=args.stream)


if __name__ == "__main__":
    sys.exit(main())
