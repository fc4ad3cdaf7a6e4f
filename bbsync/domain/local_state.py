"""
Local filesystem state of a repository's mirror directory.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LocalStateKind(Enum):
    """What occupies a repository's path under the target directory."""
    ABSENT = "absent"
    PRESENT_AS_DIRECTORY = "present_as_directory"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class LocalState:
    """Probe result for one repository path.

    ``reason`` is only set for conflicts and carries a human-readable
    diagnostic.
    """
    kind: LocalStateKind
    reason: Optional[str] = None

    @classmethod
    def absent(cls) -> 'LocalState':
        return cls(LocalStateKind.ABSENT)

    @classmethod
    def present(cls) -> 'LocalState':
        return cls(LocalStateKind.PRESENT_AS_DIRECTORY)

    @classmethod
    def conflict(cls, reason: str) -> 'LocalState':
        return cls(LocalStateKind.CONFLICT, reason)

    @property
    def is_conflict(self) -> bool:
        return self.kind == LocalStateKind.CONFLICT
