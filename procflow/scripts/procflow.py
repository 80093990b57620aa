#!/usr/bin/env python3
"""
procflow: minimal CLI around the pipeline engine

Commands:
  procflow pipe "printf abc" "tr a-z A-Z"   # stages joined like a | b
  procflow or   "false" "true"              # first success wins
  procflow and  "true" "make test"          # stop at first failure
  procflow run  pipeline.yaml               # stages/mode/env from YAML

Each STAGE is split with shlex into an argument vector; no shell syntax
(pipes, redirections, globs) is interpreted.
"""
from __future__ import annotations

import argparse
import logging
import shlex
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from procflow.core.command import Command
from procflow.core.combinators import run_and, run_or
from procflow.core.configuration import ConfigurationLoader, RunConfig
from procflow.core.errors import CommandError, ExitError, LaunchError
from procflow.core.pipeline import Pipeline, PipelineStatus
from procflow.utils.logging_config import setup_logging

logger = logging.getLogger("procflow")


def exit_code_for(err: Optional[CommandError]) -> int:
    if err is None:
        return 0
    if isinstance(err, ExitError):
        return err.returncode if err.returncode > 0 else 128 - err.returncode
    if isinstance(err, LaunchError):
        return 127
    return 1


def parse_env(pairs: Optional[Sequence[str]]) -> dict:
    env = {}
    for item in pairs or []:
        if "=" not in item:
            raise ValueError(f"--env expects KEY=VALUE, got {item!r}")
        k, v = item.split("=", 1)
        if not k:
            raise ValueError(f"--env expects KEY=VALUE, got {item!r}")
        env[k] = v
    return env


def build_commands(stages: Sequence[str], config: RunConfig) -> List[Command]:
    commands = []
    for stage in stages:
        argv = shlex.split(stage)
        if not argv:
            raise ValueError("empty stage")
        commands.append(Command(argv[0], *argv[1:], config=config))
    return commands


def render_report(mode: str, commands: Sequence[Command], statuses: Sequence[PipelineStatus],
                  err: Optional[CommandError]) -> None:
    from rich.console import Console
    from rich.table import Table
    from rich.text import Text

    table = Table(title=f"procflow {mode}", expand=False, show_lines=False)
    table.add_column("stage", justify="right", style="bold")
    table.add_column("command")
    table.add_column("status")
    table.add_column("error")
    if statuses:
        for st in sorted(statuses, key=lambda s: s.index):
            label = "ok" if st.ok else st.error.category.value
            style = "bold green" if st.ok else "bold red"
            table.add_row(str(st.index), commands[st.index].display, Text(label, style=style), str(st.error or ""))
    else:
        label = "ok" if err is None else err.category.value
        style = "bold green" if err is None else "bold red"
        table.add_row("-", f" {mode} ".join(c.display for c in commands), Text(label, style=style), str(err or ""))
    Console(stderr=True).print(table)


def execute(mode: str, commands: List[Command], report: bool = False) -> int:
    statuses: List[PipelineStatus] = []
    if mode == "pipe":
        pipeline = Pipeline(commands)
        try:
            err = pipeline.run()
        except KeyboardInterrupt:
            pipeline.terminate()
            logger.warning("interrupted; terminated running stages")
            return 130
        statuses = pipeline.statuses
    elif mode in ("or", "and"):
        runner = run_or if mode == "or" else run_and
        try:
            err = runner(*commands)
        except KeyboardInterrupt:
            logger.warning("interrupted during %s chain", mode)
            return 130
    else:
        raise ValueError(f"Unsupported mode: {mode}")
    if err is not None:
        logger.info("%s failed: %s", mode, err)
    if report:
        render_report(mode, commands, statuses, err)
    return exit_code_for(err)


def cmd_stages(args: argparse.Namespace, mode: str) -> int:
    config = RunConfig(env=parse_env(args.env))
    return execute(mode, build_commands(args.stages, config), report=args.report)


def cmd_run(args: argparse.Namespace) -> int:
    base = RunConfig(env=parse_env(args.env))
    try:
        definition = ConfigurationLoader(Path(args.config), base_config=base).load_configuration()
    except (OSError, ValueError) as e:
        logger.error("cannot load %s: %s", args.config, e)
        print(f"procflow: {e}", file=sys.stderr)
        return 2
    return execute(definition.mode, definition.commands, report=args.report)


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--env", action="append", metavar="KEY=VALUE", help="Environment override; can repeat")
    p.add_argument("--report", action="store_true", help="Print a per-stage status table on stderr")
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="WARNING")
    p.add_argument("--log-file", default=None, help="Also write logs to this file")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="procflow", description="Run external programs as a pipe, or/and chain")
    sub = parser.add_subparsers(dest="cmd")

    p_pipe = sub.add_parser("pipe", help="Run stages concurrently, stdout -> next stdin")
    p_pipe.add_argument("stages", nargs="*", help="Command line per stage (shlex-split)")
    _add_common(p_pipe)
    p_pipe.set_defaults(func=lambda a: cmd_stages(a, "pipe"))

    p_or = sub.add_parser("or", help="Run stages one by one until one succeeds")
    p_or.add_argument("stages", nargs="*", help="Command line per stage (shlex-split)")
    _add_common(p_or)
    p_or.set_defaults(func=lambda a: cmd_stages(a, "or"))

    p_and = sub.add_parser("and", help="Run stages one by one until one fails")
    p_and.add_argument("stages", nargs="*", help="Command line per stage (shlex-split)")
    _add_common(p_and)
    p_and.set_defaults(func=lambda a: cmd_stages(a, "and"))

    p_run = sub.add_parser("run", help="Run a pipeline described in a YAML file")
    p_run.add_argument("config", help="Path to pipeline YAML")
    _add_common(p_run)
    p_run.set_defaults(func=cmd_run)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    setup_logging(level=args.log_level, log_file=args.log_file, console_level=args.log_level)
    try:
        return int(args.func(args))
    except ValueError as e:
        print(f"procflow: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
