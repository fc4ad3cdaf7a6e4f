"""
Infrastructure layer for bbsync.

Contains abstractions for external systems:
- GitClient: git command execution
- BitbucketClient: Bitbucket Server API access

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient, ExitKind, ExitResult
from .bitbucket_client import BitbucketClient

__all__ = [
    'GitClient',
    'ExitKind',
    'ExitResult',
    'BitbucketClient',
]
