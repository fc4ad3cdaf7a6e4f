"""
Ref domain objects for bbsync.
"""

from dataclasses import dataclass
from typing import Dict, Any


@dataclass(frozen=True)
class RefEntry:
    """
    A remote-tracking branch as listed by ``git for-each-ref``.

    Attributes:
        short_name: Branch name with the remote prefix stripped (``main``)
        commit_date: Committer date exactly as git printed it
    """
    short_name: str
    commit_date: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'branch': self.short_name,
            'commit_date': self.commit_date,
        }
