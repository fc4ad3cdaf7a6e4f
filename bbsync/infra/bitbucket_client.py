"""
Bitbucket Server API client infrastructure for bbsync.

Lists the repositories of a Bitbucket project:
- Bearer token authentication
- Follows pagination until every repository is collected
- Maps failures onto TransportError / AuthError / DecodeError
"""

import logging
from typing import List

import requests

from ..domain.repository import RepoListPage
from ..exit_codes import AuthError, DecodeError, RepoListingError, TransportError

logger = logging.getLogger(__name__)

# Generous page-size hint; servers cap it at their own maximum
DEFAULT_PAGE_LIMIT = 1000

# Guards against a server that keeps handing out the same page
MAX_PAGES = 10000


class BitbucketClient:
    """
    Client for the Bitbucket Server REST API (``/rest/api/1.0``).

    Example:
        client = BitbucketClient("bitbucket.example.com", token)
        page = client.list_all_repos("PROJ")
        for repo in page.repos:
            print(repo.slug)
    """

    def __init__(
        self,
        domain: str,
        token: str,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        timeout: int = 30
    ):
        """
        Initialize BitbucketClient.

        Args:
            domain: Bitbucket host (e.g. "bitbucket.example.com")
            token: Bearer access token
            page_limit: ``limit`` query parameter sent with each request
            timeout: HTTP request timeout in seconds
        """
        self.domain = domain
        self.page_limit = page_limit
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'Authorization': f'Bearer {token}',
            'User-Agent': 'bbsync',
        })

    def repos_url(self, project: str) -> str:
        return f"https://{self.domain}/rest/api/1.0/projects/{project}/repos"

    def list_repos(self, project: str, start: int = 0) -> RepoListPage:
        """
        Fetch one page of a project's repositories.

        Args:
            project: Bitbucket project key
            start: Index of the first repository of the page

        Returns:
            RepoListPage

        Raises:
            TransportError: network, DNS or TLS failure
            AuthError: credential rejected (401/403)
            DecodeError: body is not the expected JSON document
            RepoListingError: any other unsuccessful HTTP status
        """
        params = {'limit': self.page_limit}
        if start:
            params['start'] = start

        url = self.repos_url(project)
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(
                f"Bitbucket rejected the access token ({response.status_code}) for project {project}"
            )
        if response.status_code != 200:
            raise RepoListingError(
                f"Bitbucket API error {response.status_code} for project {project}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(f"Bitbucket returned invalid JSON: {e}") from e

        try:
            return RepoListPage.from_api_response(data, start=start)
        except ValueError as e:
            raise DecodeError(f"Unexpected repository listing: {e}") from e

    def list_all_repos(self, project: str) -> RepoListPage:
        """
        Fetch every repository of a project, following pagination.

        Returns:
            A single RepoListPage holding all repositories, in server order
        """
        pages: List[RepoListPage] = []
        start = 0
        collected = 0

        for _ in range(MAX_PAGES):
            page = self.list_repos(project, start=start)
            pages.append(page)
            collected += len(page.repos)
            logger.debug(f"Fetched {len(page.repos)} repos of {project} starting at {start}")

            if page.is_last_page is not None:
                more = not page.is_last_page
            else:
                more = collected < page.size and len(page.repos) > 0
            if not more:
                break

            next_start = page.next_page_start
            if next_start is None:
                next_start = start + len(page.repos)
            if next_start <= start:
                logger.warning(f"Bitbucket pagination for {project} did not advance; stopping")
                break
            start = next_start

        return RepoListPage.merge(pages)
