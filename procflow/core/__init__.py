"""
Core modules: commands, pipe links, the pipeline coordinator and combinators.
"""

from .configuration import RunConfig, ConfigurationLoader, PipelineDefinition
from .errors import (
    ErrorCategory, CommandError, LaunchError, ExitError, StreamCopyError, NoneSucceededError
)
from .command import Command, Process
from .pipe import PipeLink
from .pipeline import Pipeline, PipelineStatus, StageWorker, run_pipeline
from .combinators import run_or, run_and

__all__ = [
    "RunConfig",
    "ConfigurationLoader",
    "PipelineDefinition",
    "ErrorCategory",
    "CommandError",
    "LaunchError",
    "ExitError",
    "StreamCopyError",
    "NoneSucceededError",
    "Command",
    "Process",
    "PipeLink",
    "Pipeline",
    "PipelineStatus",
    "StageWorker",
    "run_pipeline",
    "run_or",
    "run_and",
]
