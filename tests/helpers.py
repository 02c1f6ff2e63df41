"""Stage doubles shared by the engine tests."""

from collections.abc import Sequence
from typing import Any

from pipeforge.core import Stage
from pipeforge.models import ArtifactSet, ValidationIssue, ValidationResult

PASS = ValidationResult.ok()


def failing(code: str = "BAD", message: str = "artifact is bad") -> ValidationResult:
    """Failing validation with a single error issue."""
    return ValidationResult.failed(ValidationIssue(code=code, message=message))


def _next(script: list[Any]) -> Any:
    # The last scripted answer repeats forever
    if len(script) > 1:
        return script.pop(0)
    return script[0]


class ScriptedStage:
    """Stage double answering validate/repair from scripts and recording every call.

    Generated artifacts are strings "<name>#<n>" where n counts generate calls.
    """

    def __init__(
        self,
        name: str = "stage",
        validations: Sequence[ValidationResult] | None = None,
        repairs: Sequence[Any] | None = None,
        generate_errors: Sequence[Exception | None] | None = None,
    ) -> None:
        self.name = name
        self._validations = list(validations) if validations is not None else [PASS]
        self._repairs = list(repairs or [])
        self._generate_errors = list(generate_errors or [])
        self.generated: list[tuple[ArtifactSet, str | None]] = []
        self.validated: list[Any] = []
        self.repaired: list[Any] = []

    def generate(self, inputs: ArtifactSet, feedback: str | None) -> str:
        self.generated.append((inputs, feedback))
        if self._generate_errors:
            error = self._generate_errors.pop(0)
            if error is not None:
                raise error
        return f"{self.name}#{len(self.generated)}"

    def validate(self, artifact: Any) -> ValidationResult:
        self.validated.append(artifact)
        return _next(self._validations)

    def repair(self, artifact: Any, validation: ValidationResult, inputs: ArtifactSet) -> Any:
        self.repaired.append(artifact)
        return _next(self._repairs)

    def stage(
        self,
        max_retries: int | None = None,
        cost_per_call: float = 0.0,
        with_repair: bool | None = None,
    ) -> Stage:
        use_repair = bool(self._repairs) if with_repair is None else with_repair
        return Stage(
            name=self.name,
            generate=self.generate,
            validate=self.validate,
            repair=self.repair if use_repair else None,
            max_retries=max_retries,
            cost_per_call=cost_per_call,
        )
