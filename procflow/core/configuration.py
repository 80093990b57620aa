"""
Run configuration for command and pipeline execution.

``RunConfig`` carries what used to be process-wide state: the default
standard streams handed to new commands and the environment overlay merged
on top of the inherited environment. Each pipeline run gets its own value,
so concurrent runs never see each other's overrides.

``ConfigurationLoader`` reads a YAML pipeline file into a ready-to-run
``PipelineDefinition``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import yaml
from pydantic import ValidationError

from .models import PipelineFile

if TYPE_CHECKING:
    from .command import Command

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """Defaults applied when a command is constructed.

    A stream left as ``None`` is inherited from the invoking process.
    """
    stdin: Any = None
    stdout: Any = None
    stderr: Any = None
    env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunConfig":
        env = data.get("env") or {}
        return cls(
            stdin=data.get("stdin"),
            stdout=data.get("stdout"),
            stderr=data.get("stderr"),
            env={str(k): str(v) for k, v in env.items()},
        )

    def setenv(self, key: str, value: str) -> None:
        """Set an override for commands built from this config (os.environ is untouched)."""
        self.env[str(key)] = str(value)

    def with_env(self, **overrides: str) -> "RunConfig":
        env = dict(self.env)
        env.update({k: str(v) for k, v in overrides.items()})
        return replace(self, env=env)

    def build_environ(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Inherited environment with the overlay (and ``extra``) on top."""
        env = os.environ.copy()
        env.update(self.env)
        if extra:
            env.update(extra)
        return env


@dataclass
class PipelineDefinition:
    mode: str
    config: RunConfig
    commands: List["Command"]


class ConfigurationLoader:
    """YAML pipeline file loader and validator."""

    def __init__(self, config_path: Path, base_config: Optional[RunConfig] = None):
        self.config_path = Path(config_path)
        self.base_config = base_config or RunConfig()

    def load_configuration(self) -> PipelineDefinition:
        from .command import Command

        logger.info(f"Loading pipeline from {self.config_path}")
        with open(self.config_path, "r") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{self.config_path}: expected a mapping at top level")
        try:
            model = PipelineFile.model_validate(raw)
        except ValidationError as ex:
            raise ValueError(f"{self.config_path}: invalid pipeline file: {ex}") from ex

        # file overlay sits on top of whatever the caller already set
        config = self.base_config.with_env(**model.env)
        commands = []
        for stage in model.stages:
            command = Command(stage.path, *stage.args, config=config)
            if stage.merge_stderr:
                command.combine()
            commands.append(command)
        logger.debug(f"Loaded {len(commands)} stage(s), mode={model.mode}")
        return PipelineDefinition(mode=model.mode, config=config, commands=commands)
