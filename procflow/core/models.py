"""
Pydantic models for the YAML pipeline file schema (mode + env + stages).
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, field_validator


class StageModel(BaseModel):
    path: str
    args: List[str] = Field(default_factory=list)
    # combine(): stderr follows this stage's stdout
    merge_stderr: bool = False

    @field_validator("path")
    @classmethod
    def path_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("stage path must not be empty")
        return v

    @field_validator("args", mode="before")
    @classmethod
    def args_as_str(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [str(a) for a in v]
        return v


class PipelineFile(BaseModel):
    mode: Literal["pipe", "or", "and"] = "pipe"
    env: Dict[str, str] = Field(default_factory=dict)
    stages: List[StageModel] = Field(default_factory=list)

    @field_validator("env", mode="before")
    @classmethod
    def env_as_str(cls, v: Any) -> Any:
        # YAML turns 1 / true into int / bool; the environment only holds strings
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): "" if val is None else str(val) for k, val in v.items()}
        return v
