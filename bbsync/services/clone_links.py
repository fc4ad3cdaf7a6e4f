"""
Clone link selection for bbsync.
"""

from typing import Optional

from ..domain.repository import RepoDescriptor
from ..exit_codes import MalformedRepoDescriptorError

CLONE_LINK_CATEGORY = "clone"
DEFAULT_TRANSPORT_LABEL = "ssh"


class CloneLinkResolver:
    """
    Picks the URI a repository should be cloned from.

    Only links labelled with the configured transport are considered; there
    is no fallback to another transport.
    """

    def __init__(self, transport_label: str = DEFAULT_TRANSPORT_LABEL):
        self.transport_label = transport_label

    def resolve(self, repo: RepoDescriptor) -> Optional[str]:
        """
        Return the first clone link matching the transport label.

        Returns:
            The link's href, or None if no clone link uses the transport

        Raises:
            MalformedRepoDescriptorError: if the repo has no "clone" links at all
        """
        entries = repo.links.get(CLONE_LINK_CATEGORY)
        if entries is None:
            raise MalformedRepoDescriptorError(
                repo.slug, f"descriptor has no '{CLONE_LINK_CATEGORY}' link category"
            )

        for entry in entries:
            if (entry.name or "") == self.transport_label:
                return entry.href
        return None
