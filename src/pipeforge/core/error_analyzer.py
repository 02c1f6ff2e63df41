"""Error pattern analysis across the sessions of a batch.

Groups ErrorRecords by (stage, error_kind), counts them, keeps the first
three messages of each group as examples and ranks groups by frequency.
Ties keep first-seen order, so the ranking is deterministic and running
the analysis twice on the same records gives identical results.
"""

import logging
from collections.abc import Awaitable, Iterable, Sequence
from typing import Any, Protocol

from ..constants import DEFAULT_TOP_K, MAX_PATTERN_EXAMPLES
from ..errors import SessionStateError
from ..models import BatchResult, ErrorPattern, ErrorRecord, FeedbackReport, Suggestion
from .invoke import call_collaborator

logger = logging.getLogger(__name__)


class SuggestionProvider(Protocol):
    """External step turning error patterns into improvement suggestions."""

    def suggest(
        self, patterns: Sequence[ErrorPattern], stats: FeedbackReport
    ) -> list[Suggestion] | Awaitable[list[Suggestion]]: ...


class _EndedSession(Protocol):
    @property
    def ended(self) -> bool: ...

    @property
    def passed(self) -> bool | None: ...

    @property
    def errors(self) -> Sequence[ErrorRecord]: ...


class ErrorPatternAnalyzer:
    """Read-only aggregation over historical ErrorRecords."""

    def __init__(
        self,
        records: Iterable[ErrorRecord],
        success_count: int = 0,
        failure_count: int = 0,
    ) -> None:
        """Initialize the analyzer.

        Args:
            records: Error records to analyze (copied; never mutated)
            success_count: Passed runs, for reports
            failure_count: Failed runs, for reports
        """
        self._records: tuple[ErrorRecord, ...] = tuple(records)
        self.success_count = success_count
        self.failure_count = failure_count

    @classmethod
    def from_sessions(cls, sessions: Iterable[_EndedSession]) -> "ErrorPatternAnalyzer":
        """Build an analyzer from ended sessions (SessionLog or SessionRecord).

        Raises:
            SessionStateError: If any session is still being written
        """
        records: list[ErrorRecord] = []
        success = failure = 0
        for session in sessions:
            if not session.ended:
                raise SessionStateError("Cannot analyze a session that has not ended")
            records.extend(session.errors)
            if session.passed:
                success += 1
            else:
                failure += 1
        return cls(records, success_count=success, failure_count=failure)

    @classmethod
    def from_batch(cls, batch: BatchResult) -> "ErrorPatternAnalyzer":
        return cls.from_sessions(batch.sessions)

    @property
    def records(self) -> tuple[ErrorRecord, ...]:
        return self._records

    def analyze(self) -> list[ErrorPattern]:
        """Return every pattern, most frequent first."""
        groups: dict[tuple[str, str], tuple[int, list[str]]] = {}
        for record in self._records:
            key = (record.stage, record.error_kind)
            count, examples = groups.get(key, (0, []))
            if len(examples) < MAX_PATTERN_EXAMPLES:
                examples.append(record.message)
            groups[key] = (count + 1, examples)

        patterns = [
            ErrorPattern(stage=stage, error_kind=kind, count=count, examples=tuple(examples))
            for (stage, kind), (count, examples) in groups.items()
        ]
        # sorted() is stable: equal counts stay in first-seen order
        return sorted(patterns, key=lambda p: p.count, reverse=True)

    def top_k(self, k: int = DEFAULT_TOP_K) -> list[ErrorPattern]:
        """Return the k most frequent patterns."""
        if k <= 0:
            return []
        return self.analyze()[:k]

    def format_patterns(self, k: int = DEFAULT_TOP_K) -> str:
        """Render the top patterns as text for a suggestion prompt."""
        patterns = self.top_k(k)
        if not patterns:
            return "No errors recorded."
        lines = []
        for pattern in patterns:
            example = pattern.examples[0] if pattern.examples else ""
            lines.append(f"- {pattern.stage}:{pattern.error_kind} ({pattern.count}x): {example}")
        return "\n".join(lines)

    async def build_report(
        self,
        provider: SuggestionProvider | None = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> FeedbackReport:
        """Build a feedback report, asking the provider for suggestions.

        A failing provider yields a report without suggestions.
        """
        report = FeedbackReport(
            total_runs=self.success_count + self.failure_count,
            success_count=self.success_count,
            failure_count=self.failure_count,
            patterns=tuple(self.top_k(top_k)),
        )
        if provider is None or not report.patterns:
            return report
        try:
            suggestions: Any = await call_collaborator(
                provider.suggest,
                list(report.patterns),
                report,
                stage="feedback",
                operation="suggest",
            )
        except Exception:
            logger.warning("Suggestion provider failed", exc_info=True)
            return report
        return report.model_copy(update={"suggestions": tuple(suggestions or ())})
