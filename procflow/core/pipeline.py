"""
Pipeline: run N commands concurrently, stdout of each feeding stdin of the next.

Behavior:
- Wire every adjacent pair through a PipeLink; the first stage keeps its
  stdin, the last stage keeps its stdout/stderr
- One StageWorker thread per stage runs the command, closes the link ends it
  owns once the process has exited, then posts a PipelineStatus
- The coordinator drains exactly N statuses from the event queue, joins the
  workers and returns the terminal stage's error; upstream errors are
  discarded, as with a shell pipe
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .command import Command, Process
from .errors import CommandError
from .pipe import PipeLink

logger = logging.getLogger(__name__)


@dataclass
class PipelineStatus:
    index: int
    error: Optional[CommandError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StageWorker(threading.Thread):
    def __init__(
        self,
        pipeline: "Pipeline",
        index: int,
        command: Command,
        link_in: Optional[PipeLink],
        link_out: Optional[PipeLink],
    ):
        super().__init__(name=f"stage-{index}", daemon=True)
        self.pipeline = pipeline
        self.index = index
        self.command = command
        self.link_in = link_in
        self.link_out = link_out
        self.process: Optional[Process] = None

    def post(self, status: PipelineStatus) -> None:
        self.pipeline._events.put(status)

    def run(self) -> None:
        error: Optional[CommandError] = None
        try:
            self.process = self.command.start()
            error = self.process.wait()
        except Exception as ex:
            # still report, the coordinator counts on one status per stage
            logger.exception(f"stage {self.index} crashed: {self.command.display}")
            error = CommandError(f"{self.command.display}: {ex}", command=self.command.display)
        finally:
            # only after exit: the writer must not be closed while output is in flight
            if self.link_out is not None:
                self.link_out.close_writer()
            if self.link_in is not None:
                self.link_in.close_reader()
            self.post(PipelineStatus(self.index, error))


class Pipeline:
    """Coordinator for one pipeline run.

    Public API:
      - Pipeline(commands)
      - run() -> Optional[CommandError]
      - terminate() -> None
      - statuses (list, filled by run in arrival order)
    """

    def __init__(self, commands: Iterable[Command]):
        self.commands: List[Command] = list(commands)
        for c in self.commands:
            if not isinstance(c, Command):
                raise TypeError(f"pipeline stage must be a Command, got {type(c).__name__}")
        self._events: "queue.Queue[PipelineStatus]" = queue.Queue()
        self._workers: List[StageWorker] = []
        self.statuses: List[PipelineStatus] = []

    def _wire(self) -> List[PipeLink]:
        links: List[PipeLink] = []
        for upstream, downstream in zip(self.commands, self.commands[1:]):
            link = PipeLink()
            upstream.stdout = link.writer
            downstream.stdin = link.reader
            links.append(link)
        return links

    def run(self) -> Optional[CommandError]:
        n = len(self.commands)
        if n == 0:
            return None
        links = self._wire()
        logger.debug(f"Pipeline starting {n} stage(s) with {len(links)} link(s)")
        for i, command in enumerate(self.commands):
            link_in = links[i - 1] if i > 0 else None
            link_out = links[i] if i < n - 1 else None
            self._workers.append(StageWorker(self, i, command, link_in, link_out))
        for w in self._workers:
            w.start()

        last: Optional[PipelineStatus] = None
        for _ in range(n):
            status = self._events.get()
            self.statuses.append(status)
            if status.error is not None:
                logger.debug(f"stage {status.index} failed: {status.error}")
            if status.index == n - 1:
                last = status
        for w in self._workers:
            w.join()
        error = last.error if last is not None else None
        logger.debug(f"Pipeline finished: {'ok' if error is None else error}")
        return error

    def terminate(self) -> None:
        """Ask every started stage process to terminate; their waits then return normally."""
        for w in self._workers:
            if w.process is not None:
                w.process.terminate()


def run_pipeline(*commands: Command) -> Optional[CommandError]:
    """Run ``commands`` as ``c0 | c1 | ... | cN-1`` and return the last stage's error."""
    return Pipeline(commands).run()
