import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from scripter.events.stream import DEFAULT_QUEUE_SIZE
from scripter.execution.process_runner import READ_CHUNK_BYTES
from scripter.execution.script_runner import DEFAULT_OSASCRIPT_PATH

STREAM_QUEUE_SIZE_KEY = "SCRIPTER_STREAM_QUEUE_SIZE"
READ_CHUNK_BYTES_KEY = "SCRIPTER_READ_CHUNK_BYTES"
OSASCRIPT_PATH_KEY = "SCRIPTER_OSASCRIPT_PATH"
LOG_LEVEL_KEY = "LOG_LEVEL"

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "scripter"


@dataclass(frozen=True)
class EngineConfig:
    stream_queue_size: int = DEFAULT_QUEUE_SIZE
    read_chunk_bytes: int = READ_CHUNK_BYTES
    osascript_path: str = DEFAULT_OSASCRIPT_PATH
    log_level: str = "INFO"


def load_env_file(path: Path) -> Dict[str, str]:
    data: Dict[str, str] = {}
    if not path.exists():
        return data
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            k, v = line.split("=", 1)
            data[k.strip()] = v.strip().strip('"').strip("'")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Failed to read .env: {exc}", file=sys.stderr)
    return data


def get_env_path(config_dir: Path) -> Path:
    return config_dir / ".env"


def get_env_value(key: str, env_file: Mapping[str, str], environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    source = os.environ if environ is None else environ
    return source.get(key) or env_file.get(key)


def parse_positive_int(raw: Optional[str], default: int) -> int:
    value = (raw or "").strip()
    if not value:
        return int(default)
    try:
        parsed = int(value)
    except ValueError:
        return int(default)
    return parsed if parsed > 0 else int(default)


def load_config(
    config_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EngineConfig:
    """Environment variables win over the ``.env`` file in ``config_dir``."""
    env_file = load_env_file(get_env_path(config_dir or DEFAULT_CONFIG_DIR))

    def _get(key: str) -> Optional[str]:
        return get_env_value(key, env_file, environ)

    return EngineConfig(
        stream_queue_size=parse_positive_int(_get(STREAM_QUEUE_SIZE_KEY), DEFAULT_QUEUE_SIZE),
        read_chunk_bytes=parse_positive_int(_get(READ_CHUNK_BYTES_KEY), READ_CHUNK_BYTES),
        osascript_path=(_get(OSASCRIPT_PATH_KEY) or DEFAULT_OSASCRIPT_PATH).strip(),
        log_level=(_get(LOG_LEVEL_KEY) or "INFO").strip().upper(),
    )
