"""Configuration management for pipeforge."""

import tomllib
from enum import Enum
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_CALL_TIMEOUT,
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_INTER_RUN_DELAY,
    DEFAULT_MAX_REPAIRS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TARGET_RUNS,
)


class VerdictMode(str, Enum):
    """Which stage results count toward a run's pass/fail verdict."""

    # Every stage's terminal validation plus every final check
    STRICT = "strict"
    # Only the last stage plus the final checks
    TERMINAL = "terminal"


class RetryConfig(BaseModel):
    """Retry budget configuration."""

    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES, ge=0, description="Default regenerations per stage"
    )
    max_repairs: int = Field(
        default=DEFAULT_MAX_REPAIRS,
        ge=0,
        description="Consecutive patches allowed on one generation before regenerating",
    )
    stage_overrides: dict[str, int] = Field(
        default_factory=dict, description="Per-stage max_retries keyed by stage name"
    )

    def for_stage(self, name: str, stage_default: int | None = None) -> int:
        """Resolve max_retries for a stage.

        Precedence: config override > value set on the stage > global default.
        """
        if name in self.stage_overrides:
            return self.stage_overrides[name]
        if stage_default is not None:
            return stage_default
        return self.max_retries


class BatchConfig(BaseModel):
    """Configuration for batch execution."""

    target_runs: int = Field(default=DEFAULT_TARGET_RUNS, ge=0)
    concurrency_limit: int = Field(default=DEFAULT_CONCURRENCY_LIMIT, ge=1)
    inter_run_delay: float = Field(
        default=DEFAULT_INTER_RUN_DELAY, ge=0, description="Seconds to wait between runs"
    )


class TimeoutConfig(BaseModel):
    """Per-call timeout for generate/validate/repair/final checks."""

    call_timeout: float | None = Field(default=DEFAULT_CALL_TIMEOUT, gt=0)


class VerdictConfig(BaseModel):
    """Run verdict configuration."""

    mode: VerdictMode = VerdictMode.STRICT


class OutputConfig(BaseModel):
    """Where the CLI writes batch reports and session logs."""

    directory: Path = Path("pipeforge-output")
    persist_sessions: bool = True


class ForgeConfig(BaseModel):
    """Root configuration for pipeforge."""

    retries: RetryConfig = Field(default_factory=RetryConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    verdict: VerdictConfig = Field(default_factory=VerdictConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


def load_config(config_path: Path) -> ForgeConfig:
    """Load config from a TOML file.

    Args:
        config_path: Path to pipeforge.toml

    Returns:
        Loaded configuration, or defaults if the file doesn't exist
    """
    if not config_path.exists():
        return ForgeConfig()
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return ForgeConfig.model_validate(data)


def write_config_template(config_path: Path) -> Path:
    """Write default config template.

    Args:
        config_path: Destination file

    Returns:
        Path to the written config file
    """
    template = {
        "retries": {
            "max_retries": DEFAULT_MAX_RETRIES,
            "max_repairs": DEFAULT_MAX_REPAIRS,
            # Per-stage budgets, e.g. {"concept" = 5}
            "stage_overrides": {},
        },
        "batch": {
            "target_runs": DEFAULT_TARGET_RUNS,
            "concurrency_limit": DEFAULT_CONCURRENCY_LIMIT,
            "inter_run_delay": DEFAULT_INTER_RUN_DELAY,
        },
        "timeouts": {"call_timeout": DEFAULT_CALL_TIMEOUT},
        "verdict": {"mode": VerdictMode.STRICT.value},
        "output": {"directory": "pipeforge-output", "persist_sessions": True},
    }
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "wb") as f:
        tomli_w.dump(template, f)
    return config_path
