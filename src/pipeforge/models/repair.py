"""Repair outcome variants.

A repair call classifies the failing issues of an artifact and answers with
exactly one of three outcomes:

- Patched: the artifact was fixed locally; re-validate without regenerating.
- RegenerationRequired: the issues are structural; regenerate with feedback.
- Unresolved: nothing more can be done locally; keep the best artifact.

Only RegenerationRequired costs a retry-budget unit.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .validation import ValidationIssue


class Patched(BaseModel):
    """Artifact fixed in place by local repair actions."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["patched"] = "patched"
    artifact: Any
    applied_actions: tuple[str, ...] = ()


class RegenerationRequired(BaseModel):
    """Artifact must be discarded and regenerated upstream."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["regeneration_required"] = "regeneration_required"
    feedback: str


class Unresolved(BaseModel):
    """Issues that neither a patch nor the repair step could address."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unresolved"] = "unresolved"
    remaining_issues: tuple[ValidationIssue, ...] = ()


RepairOutcome = Annotated[
    Patched | RegenerationRequired | Unresolved,
    Field(discriminator="kind"),
]
