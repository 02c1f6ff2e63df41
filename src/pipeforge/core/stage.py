"""Stage and pipeline definitions.

A stage is any object offering the generate/validate[/repair] contract; the
engine never looks at what a stage produces. Collaborators may be plain or
async callables; plain ones run in a worker thread.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..constants import FINAL_STAGE
from ..errors import InvalidPipelineError
from ..models import ArtifactSet, RepairOutcome, ValidationResult

GenerateFn = Callable[[ArtifactSet, str | None], Any]
ValidateFn = Callable[[Any], ValidationResult | Awaitable[ValidationResult]]
RepairFn = Callable[
    [Any, ValidationResult, ArtifactSet], RepairOutcome | Awaitable[RepairOutcome]
]
CheckFn = Callable[[ArtifactSet], ValidationResult | Awaitable[ValidationResult]]


@runtime_checkable
class StageContract(Protocol):
    """Object-style stage contract; repair() is optional."""

    def generate(self, inputs: ArtifactSet, feedback: str | None) -> Any: ...

    def validate(self, artifact: Any) -> Any: ...


@dataclass(frozen=True)
class Stage:
    """One fixed position in the pipeline.

    Attributes:
        name: Unique stage name; its artifact is stored under this key.
        generate: Produces an artifact from prior artifacts and optional feedback.
        validate: Checks an artifact; should be deterministic and free of I/O.
        repair: Optional local fixer. Stages without it regenerate on failure.
        max_retries: Regenerations allowed (None = pipeline default).
        cost_per_call: Estimated cost of one generate call.
    """

    name: str
    generate: GenerateFn
    validate: ValidateFn
    repair: RepairFn | None = None
    max_retries: int | None = None
    cost_per_call: float = 0.0

    @classmethod
    def from_contract(
        cls,
        name: str,
        contract: StageContract,
        max_retries: int | None = None,
        cost_per_call: float = 0.0,
    ) -> "Stage":
        """Build a stage from an object implementing generate/validate[/repair]."""
        return cls(
            name=name,
            generate=contract.generate,
            validate=contract.validate,
            repair=getattr(contract, "repair", None),
            max_retries=max_retries,
            cost_per_call=cost_per_call,
        )

    @property
    def has_repair(self) -> bool:
        return self.repair is not None


@dataclass(frozen=True)
class FinalCheck:
    """Terminal check run once over the complete artifact set (no retries)."""

    name: str
    check: CheckFn


@dataclass(frozen=True)
class PipelineDefinition:
    """Fixed stage list plus terminal checks, configured once per orchestrator."""

    stages: tuple[Stage, ...]
    final_checks: tuple[FinalCheck, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "stages", tuple(self.stages))
        object.__setattr__(self, "final_checks", tuple(self.final_checks))
        if not self.stages:
            raise InvalidPipelineError("Pipeline needs at least one stage")
        names = [stage.name for stage in self.stages]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InvalidPipelineError(f"Duplicate stage names: {', '.join(duplicates)}")
        if FINAL_STAGE in names:
            raise InvalidPipelineError(f"'{FINAL_STAGE}' is reserved for the final checks")
        for stage in self.stages:
            if stage.max_retries is not None and stage.max_retries < 0:
                raise InvalidPipelineError(f"Stage '{stage.name}': max_retries must be >= 0")

    @classmethod
    def build(
        cls, stages: Sequence[Stage], final_checks: Sequence[FinalCheck] = ()
    ) -> "PipelineDefinition":
        return cls(stages=tuple(stages), final_checks=tuple(final_checks))

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]
