"""Validation models produced by stage validators and final checks."""

from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["error", "warning"]


class ValidationIssue(BaseModel):
    """Single issue found while validating an artifact."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="Stable machine-readable issue code")
    message: str = Field(description="Human-readable description")
    severity: Severity = "error"


class ValidationResult(BaseModel):
    """Outcome of validating one artifact.

    A failed validation is a normal value, never an exception: it drives
    the repair/regenerate loop and is recorded, but it does not abort a run.

    Attributes:
        passed: True if the artifact is acceptable.
        issues: Errors and warnings found, in validator order.
    """

    model_config = ConfigDict(frozen=True)

    passed: bool
    issues: tuple[ValidationIssue, ...] = ()

    @classmethod
    def ok(cls, *warnings: ValidationIssue) -> "ValidationResult":
        """Passing result, optionally carrying warnings."""
        return cls(passed=True, issues=warnings)

    @classmethod
    def failed(cls, *issues: ValidationIssue) -> "ValidationResult":
        """Failing result with the given issues."""
        return cls(passed=False, issues=issues)

    @classmethod
    def merge(cls, results: Iterable["ValidationResult"]) -> "ValidationResult":
        """Combine several results; passes only if all of them pass."""
        passed = True
        issues: list[ValidationIssue] = []
        for result in results:
            passed = passed and result.passed
            issues.extend(result.issues)
        return cls(passed=passed, issues=tuple(issues))

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    def format_feedback(self) -> str:
        """Render the issues as regeneration feedback for a generator."""
        if self.passed:
            return ""
        lines = ["The previous output failed validation. Fix the following issues:"]
        for issue in self.errors or list(self.issues):
            lines.append(f"- [{issue.code}] {issue.message}")
        for issue in self.warnings if self.errors else []:
            lines.append(f"- (warning) [{issue.code}] {issue.message}")
        return "\n".join(lines)
