import codecs
import re
from typing import Callable, Dict, Mapping, Optional

REDACTED = "REDACTED"

# Argument and variable names whose values never reach the logs.
_SECRET_NAME = r"[A-Za-z0-9_.-]*(?:password|passwd|passphrase|token|secret|api[_-]?key)"
_SECRET_NAME_RE = re.compile(rf"(?i){_SECRET_NAME}")
# --password hunter2, --db-token=abc
_SECRET_FLAG_RE = re.compile(rf"(?i)(--{_SECRET_NAME}[= ])(\S+)")
# GITHUB_TOKEN=abc passed as an argument, e.g. to /usr/bin/env
_SECRET_ASSIGNMENT_RE = re.compile(rf"(?i)(?<![-\w])({_SECRET_NAME})=(\S+)")


def is_secret_name(name: str) -> bool:
    return bool(_SECRET_NAME_RE.fullmatch(name or ""))


def redact(command_line: str) -> str:
    """Mask secret-looking argument values in a rendered command line."""
    value = _SECRET_FLAG_RE.sub(rf"\1{REDACTED}", command_line or "")
    return _SECRET_ASSIGNMENT_RE.sub(rf"\1={REDACTED}", value)


def redact_environment(environment: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
    """Copy of a ``ProcessMode.environment`` safe to log. ``None`` means inherited."""
    if environment is None:
        return None
    return {key: (REDACTED if is_secret_name(key) else value) for key, value in environment.items()}


def utf8_chunk_decoder() -> Callable[[bytes, bool], str]:
    """Incremental decoder: a multi-byte character split across two reads survives."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    return decoder.decode
