"""
Script-style helpers on top of Command.

Thin sequential glue: run a program, capture its output, fail fast, print,
read the environment. The ``must*`` helpers are the only place where an
error terminates the interpreter; the core never does.
"""

from __future__ import annotations

import io
import logging
import os
import subprocess
import sys
from typing import Any, Optional, Tuple

from .command import Command
from .configuration import RunConfig
from .errors import CommandError

logger = logging.getLogger(__name__)


def cmd(path: str, *args: Any, config: Optional[RunConfig] = None) -> Command:
    return Command(path, *args, config=config)


def run(path: str, *args: Any, config: Optional[RunConfig] = None) -> Optional[CommandError]:
    return cmd(path, *args, config=config).run()


def output_bytes(path: str, *args: Any, config: Optional[RunConfig] = None) -> Tuple[bytes, Optional[CommandError]]:
    """Run a command with stdout captured; whatever was written is returned even on failure."""
    buf = io.BytesIO()
    err = cmd(path, *args, config=config).redirect(stdout=buf).run()
    return buf.getvalue(), err


def output_string(path: str, *args: Any, config: Optional[RunConfig] = None) -> Tuple[str, Optional[CommandError]]:
    data, err = output_bytes(path, *args, config=config)
    return data.decode("utf-8", errors="replace"), err


def _write(stream: Any, text: str, fallback: Any = None) -> None:
    # STDOUT means "wherever stdout goes": the fallback stream, else sys.stdout
    if isinstance(stream, int) and stream == subprocess.STDOUT:
        stream = fallback
        if isinstance(stream, int) and stream == subprocess.STDOUT:
            stream = None
    if stream is None:
        stream = sys.stdout
    elif isinstance(stream, int):
        if stream == subprocess.DEVNULL:
            return
        os.write(stream, text.encode("utf-8"))
        return
    if isinstance(stream, io.TextIOBase):
        stream.write(text)
    else:
        stream.write(text.encode("utf-8"))
    stream.flush()


def must(error: Optional[CommandError], config: Optional[RunConfig] = None) -> None:
    """Exit the interpreter with status 1 if ``error`` is set."""
    if error is None:
        return
    logger.error(f"fatal: {error}")
    if config is not None and config.stderr is not None:
        _write(config.stderr, f"{error}\n", fallback=config.stdout)
    else:
        _write(sys.stderr, f"{error}\n")
    sys.exit(1)


def must_run(path: str, *args: Any, config: Optional[RunConfig] = None) -> None:
    must(run(path, *args, config=config), config)


def must_bytes(path: str, *args: Any, config: Optional[RunConfig] = None) -> bytes:
    data, err = output_bytes(path, *args, config=config)
    must(err, config)
    return data


def must_string(path: str, *args: Any, config: Optional[RunConfig] = None) -> str:
    return must_bytes(path, *args, config=config).decode("utf-8", errors="replace")


def echo(*values: Any, sep: str = " ", end: str = "\n", config: Optional[RunConfig] = None) -> None:
    _write(config.stdout if config is not None else None, sep.join(str(v) for v in values) + end)


def printf(fmt: str, *values: Any, config: Optional[RunConfig] = None) -> None:
    _write(config.stdout if config is not None else None, fmt % values if values else fmt)


def getenv(key: str, default: str = "", config: Optional[RunConfig] = None) -> str:
    """Overlay first, then the inherited environment; empty counts as unset."""
    if config is not None and key in config.env:
        val = config.env[key]
    else:
        val = os.environ.get(key, "")
    return val or default


def join_path(*nodes: str) -> str:
    if not nodes:
        return ""
    return os.path.join(*nodes)
