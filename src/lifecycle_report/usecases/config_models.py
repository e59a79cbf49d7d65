from __future__ import annotations

import re
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

# Config models map YAML sections to typed structures.


class RuntimeConfig(BaseModel):
    # Replay runtime knobs shared by every session.
    model_config = ConfigDict(extra="forbid")
    default_context_id: str = Field("0-0", min_length=1)
    after_all_pattern: str = "after all"

    @field_validator("after_all_pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        # Fail fast on an invalid regex instead of at replay time.
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"after_all_pattern is not a valid regex: {exc}") from exc
        return value

    def compiled_after_all_pattern(self) -> re.Pattern[str]:
        return re.compile(self.after_all_pattern, re.IGNORECASE)


class BackendConfig(BaseModel):
    # Backend selector: in-memory for dry runs, results_dir to persist JSON results.
    model_config = ConfigDict(extra="forbid")
    kind: Literal["memory", "results_dir"] = "results_dir"
    # Accept the reporter-style outputDir/resultsDir spellings as well.
    results_dir: str = Field(
        "report-results",
        validation_alias=AliasChoices("results_dir", "resultsDir", "output_dir", "outputDir"),
    )


class LoggingConfig(BaseModel):
    # Structured log sink selection.
    model_config = ConfigDict(extra="forbid")
    sink: Literal["none", "stdout", "jsonl"] = "none"
    path: str | None = None
    level: Literal["debug", "info", "warning", "error"] = "info"

    @model_validator(mode="after")
    def _require_path(self) -> LoggingConfig:
        # For jsonl sink, a path is required to avoid silent defaults.
        if self.sink == "jsonl" and not self.path:
            raise ValueError("logging.path is required when sink is 'jsonl'")
        return self


class AppConfig(BaseModel):
    # AppConfig is the top-level typed view of configuration.
    model_config = ConfigDict(extra="forbid")
    version: int
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    environment: dict[str, str] = Field(default_factory=dict)
