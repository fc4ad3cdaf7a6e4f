"""
Repository domain objects for bbsync.

Descriptors for the repositories of a Bitbucket project, as returned by
the project repo listing. They are immutable once fetched.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional, Dict, Any, List, Mapping, Tuple


@dataclass(frozen=True)
class LinkEntry:
    """One link of a repository (e.g. a clone URL and its transport)."""
    href: str
    name: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'LinkEntry':
        if not isinstance(data, dict):
            raise ValueError(f"link must be an object, got {type(data).__name__}")
        href = data.get('href')
        if not isinstance(href, str):
            raise ValueError("link is missing 'href'")
        name = data.get('name')
        if name is not None and not isinstance(name, str):
            raise ValueError("link 'name' must be a string")
        return cls(href=href, name=name)

    def to_dict(self) -> Dict[str, Any]:
        result = {'href': self.href}
        if self.name is not None:
            result['name'] = self.name
        return result


@dataclass(frozen=True)
class RepoDescriptor:
    """
    Metadata for one hosted repository.

    Attributes:
        slug: Filesystem-safe unique identifier, also the local directory name
        name: Display name
        links: Link category (e.g. "clone", "self") to its ordered entries
    """
    slug: str
    name: str
    links: Mapping[str, Tuple[LinkEntry, ...]] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Read-only view so the descriptor stays immutable below the top level
        object.__setattr__(self, 'links', MappingProxyType(dict(self.links)))

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'RepoDescriptor':
        """
        Create from one element of the Bitbucket ``values`` array.

        Raises:
            ValueError: if the element does not match the expected schema
        """
        if not isinstance(data, dict):
            raise ValueError(f"repo must be an object, got {type(data).__name__}")

        slug = data.get('slug')
        name = data.get('name')
        if not isinstance(slug, str) or not slug:
            raise ValueError("repo is missing 'slug'")
        if not isinstance(name, str):
            raise ValueError(f"repo {slug} is missing 'name'")

        raw_links = data.get('links', {})
        if not isinstance(raw_links, dict):
            raise ValueError(f"repo {slug} has malformed 'links'")

        links = {}
        for category, entries in raw_links.items():
            if not isinstance(entries, list):
                raise ValueError(f"repo {slug} link category {category!r} must be a list")
            links[category] = tuple(LinkEntry.from_api_response(e) for e in entries)

        return cls(slug=slug, name=name, links=links)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'slug': self.slug,
            'name': self.name,
            'links': {
                category: [entry.to_dict() for entry in entries]
                for category, entries in self.links.items()
            },
        }


@dataclass(frozen=True)
class RepoListPage:
    """
    One page (or a merged set of pages) of a project's repositories.

    ``size`` is the repository count the server reported and ``limit`` the
    page size it applied. Servers that page explicitly also send
    ``isLastPage`` / ``nextPageStart``.
    """
    size: int
    limit: int
    repos: Tuple[RepoDescriptor, ...] = ()
    start: int = 0
    is_last_page: Optional[bool] = None
    next_page_start: Optional[int] = None

    @property
    def has_more(self) -> bool:
        """True if the server has repositories beyond this page."""
        if self.is_last_page is not None:
            return not self.is_last_page
        return self.start + len(self.repos) < self.size and len(self.repos) > 0

    @classmethod
    def from_api_response(cls, data: Dict[str, Any], start: int = 0) -> 'RepoListPage':
        """
        Create from a Bitbucket ``/projects/{project}/repos`` response body.

        Args:
            data: Decoded response body
            start: Start index that was requested; used when the body has no ``start``

        Raises:
            ValueError: if the body does not match the expected schema
        """
        if not isinstance(data, dict):
            raise ValueError("response body must be a JSON object")

        size = data.get('size')
        limit = data.get('limit')
        values = data.get('values')
        if not isinstance(size, int) or isinstance(size, bool):
            raise ValueError("response is missing integer 'size'")
        if not isinstance(limit, int) or isinstance(limit, bool):
            raise ValueError("response is missing integer 'limit'")
        if not isinstance(values, list):
            raise ValueError("response is missing 'values' list")
        if len(values) > limit:
            raise ValueError(f"page holds {len(values)} repos but limit is {limit}")

        is_last_page = data.get('isLastPage')
        next_page_start = data.get('nextPageStart')
        echoed_start = data.get('start')
        if isinstance(echoed_start, int) and not isinstance(echoed_start, bool):
            start = echoed_start

        return cls(
            size=size,
            limit=limit,
            repos=tuple(RepoDescriptor.from_api_response(v) for v in values),
            start=start,
            is_last_page=is_last_page if isinstance(is_last_page, bool) else None,
            next_page_start=next_page_start if isinstance(next_page_start, int) else None,
        )

    @classmethod
    def merge(cls, pages: List['RepoListPage']) -> 'RepoListPage':
        """Combine consecutive pages into a single page holding every repo."""
        repos = tuple(repo for page in pages for repo in page.repos)
        if not pages:
            return cls(size=0, limit=0, repos=(), is_last_page=True)
        total = max(max(page.size for page in pages), len(repos))
        return cls(
            size=total,
            limit=max(len(repos), pages[0].limit),
            repos=repos,
            start=pages[0].start,
            is_last_page=True,
        )
