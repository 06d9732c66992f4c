"""
GitHub API client wrapper.
"""

import logging
from typing import Any, List, Optional

import httpx

from monosync.errors import GitHubAPIError

logger = logging.getLogger(__name__)


class GitHubClient:
    """
    Async GitHub API client.

    Provides a reusable HTTP client with proper headers and error handling.
    Requests are never retried here; failures surface as GitHubAPIError.
    """

    GITHUB_API = "https://api.github.com"

    def __init__(
        self,
        token: str,
        timeout: float = 30.0,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub token
            timeout: Request timeout in seconds
            base_url: API base URL (GitHub Enterprise); defaults to GITHUB_API
            transport: Optional httpx transport (used by tests)
        """
        self.token = token
        self.timeout = timeout
        self.base_url = (base_url or self.GITHUB_API).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._login: Optional[str] = None
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Close HTTP client. Call this when shutting down."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}" if path.startswith("/") else f"{self.base_url}/{path}"

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request to the GitHub API and return the raw response."""
        client = await self._get_client()
        logger.debug(f"{method} {path}")
        return await client.request(method, self._url(path), headers=self._headers, **kwargs)

    async def request_json(self, method: str, path: str, **kwargs) -> Any:
        """
        Send a request and decode its JSON body.

        Args:
            method: HTTP method
            path: API path (e.g. "/repos/owner/repo")
            **kwargs: Passed to httpx (json, params, ...)

        Returns:
            Decoded JSON body (None for empty responses)

        Raises:
            GitHubAPIError: If the response status is not 2xx
        """
        response = await self.request(method, path, **kwargs)

        if response.status_code >= 400:
            raise GitHubAPIError(response.status_code, method, path, _error_message(response))

        if not response.content:
            return None
        return response.json()

    async def paginate(self, path: str, per_page: int = 100, max_pages: int = 10, **kwargs) -> List[Any]:
        """
        Collect all items of a list endpoint.

        Args:
            path: API path of a list endpoint
            per_page: Page size
            max_pages: Upper bound on pages fetched

        Returns:
            Concatenated items
        """
        params = dict(kwargs.pop("params", None) or {})
        params["per_page"] = per_page
        items: List[Any] = []

        for page in range(1, max_pages + 1):
            params["page"] = page
            data = await self.request_json("GET", path, params=params, **kwargs)
            items.extend(data or [])
            if not data or len(data) < per_page:
                break

        return items

    async def get_login(self) -> str:
        """Login of the account the token belongs to (cached)."""
        if self._login is None:
            user = await self.request_json("GET", "/user")
            self._login = user.get("login", "")
        return self._login


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] if response.text else ""
    if isinstance(data, dict):
        return data.get("message", "")
    return ""
