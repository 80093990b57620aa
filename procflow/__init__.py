"""
procflow: run external programs alone, in sequence, or as a concurrent pipe.
"""

from .core import (
    RunConfig,
    Command,
    Process,
    PipeLink,
    Pipeline,
    PipelineStatus,
    CommandError,
    LaunchError,
    ExitError,
    NoneSucceededError,
    run_pipeline,
    run_or,
    run_and,
)
from .core.shortcuts import (
    cmd, run, output_bytes, output_string, must, must_run, must_bytes, must_string,
    echo, printf, getenv, join_path,
)

__version__ = "0.1.0"

__all__ = [
    "RunConfig",
    "Command",
    "Process",
    "PipeLink",
    "Pipeline",
    "PipelineStatus",
    "CommandError",
    "LaunchError",
    "ExitError",
    "NoneSucceededError",
    "run_pipeline",
    "run_or",
    "run_and",
    "cmd",
    "run",
    "output_bytes",
    "output_string",
    "must",
    "must_run",
    "must_bytes",
    "must_string",
    "echo",
    "printf",
    "getenv",
    "join_path",
]
