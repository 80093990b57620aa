"""
Command and Process: a single external program invocation.

A ``Command`` binds an executable path, its argument vector, three
replaceable I/O endpoints and an environment overlay. ``start()`` spawns the
OS process and returns a ``Process`` right away; ``Process.wait()`` blocks
until it exits and returns its termination error (``None`` on success).

Endpoints may be ``None`` (inherit), an int fd / ``subprocess.DEVNULL``, a
file object with a real ``fileno()`` (handed to the child as is) or any
other file-like object, which is copied through an OS pipe by a pump thread.
Caller streams are never closed here.
"""

from __future__ import annotations

import codecs
import io
import logging
import shlex
import subprocess
import threading
from typing import Any, Dict, List, Optional, Tuple

from .configuration import RunConfig
from .errors import CommandError, ExitError, LaunchError, StreamCopyError

logger = logging.getLogger(__name__)

_CHUNK = 32 * 1024
_UNSET = object()


def _fileno(stream: Any) -> Optional[int]:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        # io.UnsupportedOperation (BytesIO, capture objects) or closed file
        return None


def _flush(stream: Any) -> None:
    flush = getattr(stream, "flush", None)
    if flush is not None:
        try:
            flush()
        except (OSError, ValueError):
            pass


def _input_endpoint(stream: Any) -> Tuple[Any, Any]:
    """Return (Popen stdin argument, source to pump or None)."""
    if stream is None or isinstance(stream, int):
        return stream, None
    if _fileno(stream) is not None:
        return stream, None
    return subprocess.PIPE, stream


def _output_endpoint(stream: Any) -> Tuple[Any, Any]:
    """Return (Popen stdout/stderr argument, destination to pump or None)."""
    if stream is None or isinstance(stream, int):
        return stream, None
    if _fileno(stream) is not None:
        # anything already buffered on the Python side goes out first
        _flush(stream)
        return stream, None
    return subprocess.PIPE, stream


class _OutputPump(threading.Thread):
    """Copy a child's output pipe into a caller stream until EOF."""

    def __init__(self, name: str, src: Any, dst: Any):
        super().__init__(name=name, daemon=True)
        self.src = src
        self.dst = dst
        self.error: Optional[BaseException] = None

    def _write(self, chunk: bytes, decoder) -> None:
        if isinstance(self.dst, io.TextIOBase):
            text = decoder.decode(chunk, final=not chunk)
            if text:
                self.dst.write(text)
        elif chunk:
            self.dst.write(chunk)

    def run(self) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = self.src.read1(_CHUNK)
                if not chunk:
                    break
                if self.error is None:
                    try:
                        self._write(chunk, decoder)
                    except Exception as ex:
                        # keep draining so the child never blocks on a full pipe
                        self.error = ex
            if self.error is None:
                self._write(b"", decoder)
                _flush(self.dst)
        finally:
            self.src.close()


class _InputPump(threading.Thread):
    """Feed a caller stream into a child's stdin, then close it."""

    def __init__(self, name: str, src: Any, dst: Any):
        super().__init__(name=name, daemon=True)
        self.src = src
        self.dst = dst
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            while True:
                data = self.src.read(_CHUNK)
                if not data:
                    break
                if isinstance(data, str):
                    data = data.encode("utf-8")
                self.dst.write(data)
                self.dst.flush()
        except BrokenPipeError:
            # reader went away early; same as writing into a closed shell pipe
            pass
        except Exception as ex:
            self.error = ex
        finally:
            try:
                self.dst.close()
            except BrokenPipeError:
                pass


class Process:
    """A started command.

    Holds either a running ``subprocess.Popen`` or, when the launch failed,
    the ``LaunchError`` that ``wait`` hands back immediately.
    """

    def __init__(
        self,
        command: str,
        popen: Optional[subprocess.Popen] = None,
        pumps: Optional[List[threading.Thread]] = None,
        error: Optional[CommandError] = None,
    ):
        self.command = command
        self._popen = popen
        self._pumps = pumps or []
        self._error = error
        self._done = popen is None
        self._lock = threading.Lock()

    @property
    def pid(self) -> Optional[int]:
        return self._popen.pid if self._popen is not None else None

    @property
    def returncode(self) -> Optional[int]:
        return self._popen.returncode if self._popen is not None else None

    @property
    def launched(self) -> bool:
        return self._popen is not None

    def wait(self) -> Optional[CommandError]:
        with self._lock:
            if self._done:
                return self._error
            rc = self._popen.wait()
            for pump in self._pumps:
                pump.join()
            self._error = self._result(rc)
            self._done = True
        logger.debug(f"pid={self._popen.pid} exited rc={rc}: {self.command}")
        return self._error

    def _result(self, rc: int) -> Optional[CommandError]:
        if rc != 0:
            return ExitError(self.command, rc)
        for pump in self._pumps:
            if pump.error is not None:
                return StreamCopyError(self.command, pump.error)
        return None

    def terminate(self) -> None:
        if self._popen is not None and self._popen.poll() is None:
            self._popen.terminate()

    def kill(self) -> None:
        if self._popen is not None and self._popen.poll() is None:
            self._popen.kill()


class Command:
    """An external program invocation waiting to be started."""

    def __init__(self, path: str, *args: Any, config: Optional[RunConfig] = None):
        if not path:
            raise ValueError("command path must not be empty")
        self.path = str(path)
        self.args: List[str] = [str(a) for a in args]
        self.config = config or RunConfig()
        self.stdin: Any = self.config.stdin
        self.stdout: Any = self.config.stdout
        self.stderr: Any = self.config.stderr
        # per-command overrides, applied on top of config.env
        self.env: Dict[str, str] = {}

    @property
    def argv(self) -> List[str]:
        return [self.path, *self.args]

    @property
    def display(self) -> str:
        return " ".join(shlex.quote(x) for x in self.argv)

    def __repr__(self) -> str:
        return f"Command({self.display!r})"

    def redirect(self, stdin: Any = _UNSET, stdout: Any = _UNSET, stderr: Any = _UNSET) -> "Command":
        if stdin is not _UNSET:
            self.stdin = stdin
        if stdout is not _UNSET:
            self.stdout = stdout
        if stderr is not _UNSET:
            self.stderr = stderr
        return self

    def combine(self) -> "Command":
        """Send stderr wherever stdout currently goes."""
        self.stderr = self.stdout if self.stdout is not None else subprocess.STDOUT
        return self

    def combine_err(self) -> "Command":
        """Send stdout wherever stderr currently goes.

        Binds at call time. When stderr is already ``subprocess.STDOUT``
        (after ``combine``) both streams share stdout and nothing changes.
        """
        if self.stderr is None:
            self.stdout = 2
        elif self.stderr is not subprocess.STDOUT:
            self.stdout = self.stderr
        return self

    def setenv(self, key: str, value: str) -> "Command":
        self.env[str(key)] = str(value)
        return self

    def start(self) -> Process:
        display = self.display
        stdin_arg, stdin_src = _input_endpoint(self.stdin)
        stdout_arg, stdout_dst = _output_endpoint(self.stdout)
        if stdout_dst is not None and self.stderr is self.stdout:
            # combined into one pipe so the two streams keep their interleaving
            stderr_arg, stderr_dst = subprocess.STDOUT, None
        else:
            stderr_arg, stderr_dst = _output_endpoint(self.stderr)
        try:
            popen = subprocess.Popen(
                self.argv,
                stdin=stdin_arg,
                stdout=stdout_arg,
                stderr=stderr_arg,
                env=self.config.build_environ(self.env),
                close_fds=True,
            )
        except OSError as ex:
            logger.debug(f"launch failed: {display}: {ex}")
            return Process(display, error=LaunchError(display, ex))
        logger.debug(f"started pid={popen.pid}: {display}")

        pumps: List[threading.Thread] = []
        if stdin_src is not None:
            pumps.append(_InputPump(f"pump-{popen.pid}-stdin", stdin_src, popen.stdin))
        if stdout_dst is not None:
            pumps.append(_OutputPump(f"pump-{popen.pid}-stdout", popen.stdout, stdout_dst))
        if stderr_dst is not None:
            pumps.append(_OutputPump(f"pump-{popen.pid}-stderr", popen.stderr, stderr_dst))
        for pump in pumps:
            pump.start()
        return Process(display, popen=popen, pumps=pumps)

    def run(self) -> Optional[CommandError]:
        return self.start().wait()
