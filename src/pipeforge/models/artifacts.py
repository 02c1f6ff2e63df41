"""Artifact set threaded through a pipeline run."""

from collections.abc import Iterator, Mapping
from typing import Any


class ArtifactSet(Mapping[str, Any]):
    """Immutable mapping of stage name to the artifact that stage produced.

    Every stage output of a run is retained, not just the last one, so a
    later stage can consume any earlier artifact by name. Artifacts are
    opaque: the engine never looks inside them.

    Example:
        >>> artifacts = ArtifactSet().with_artifact("concept", concept)
        >>> artifacts["concept"] is concept
        True
        >>> artifacts.latest is concept
        True
    """

    __slots__ = ("_items",)

    def __init__(self, items: Mapping[str, Any] | None = None) -> None:
        self._items: dict[str, Any] = dict(items or {})

    def __getitem__(self, name: str) -> Any:
        return self._items[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ArtifactSet({list(self._items)})"

    @property
    def latest(self) -> Any:
        """Artifact of the most recently completed stage, or None if empty."""
        if not self._items:
            return None
        return self._items[next(reversed(self._items))]

    def with_artifact(self, name: str, artifact: Any) -> "ArtifactSet":
        """Return a new set with an artifact added (or replaced) under name."""
        items = dict(self._items)
        items.pop(name, None)
        items[name] = artifact
        return ArtifactSet(items)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._items)
