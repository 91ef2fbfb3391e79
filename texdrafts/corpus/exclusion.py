"""User exclusion list, applied to build targets and word-count targets alike."""

from dataclasses import dataclass, field
from typing import Iterable

from .paths import canonicalize


@dataclass(frozen=True)
class ExclusionFilter:
    """Root-scoped exclusion: removes listed documents, never their dependencies' effect on others."""

    excluded: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_entries(cls, entries: Iterable[str]) -> "ExclusionFilter":
        """Build from raw entries (extension optional, ./ optional).

        Raises:
            ValueError: if an entry does not name a document
        """
        return cls(excluded=frozenset(canonicalize(entry) for entry in entries))

    def is_excluded(self, name: str) -> bool:
        try:
            return canonicalize(name) in self.excluded
        except ValueError:
            return False

    def filter_roots(self, roots: Iterable[str]) -> set[str]:
        return {root for root in roots if not self.is_excluded(root)}

    def filter_paths(self, paths: Iterable[str]) -> list[str]:
        """Order-preserving variant for the word-count target list."""
        return [path for path in paths if not self.is_excluded(path)]

    def __bool__(self) -> bool:
        return bool(self.excluded)
