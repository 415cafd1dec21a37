"""GitHub REST API client for library metadata lookups.

Endpoints used (read-only, unauthenticated):
    GET /search/repositories?q=<name>+<toolkit>+library&sort=stars&order=desc
    GET /repos/<owner>/<repo>/releases/latest
    GET /repos/<owner>/<repo>/tags

Every request runs in a worker thread and the caller polls for the result,
so a request can be abandoned when its timeout elapses or when the caller's
cancel event is set, even if the socket is stuck.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from .package import NetworkError, ParseError

logger = logging.getLogger(__name__)

# Poll interval for cancellation checks (seconds)
CANCEL_CHECK_INTERVAL = 0.1

_HEADERS = {"Accept": "application/vnd.github+json", "User-Agent": "arduino-pkg"}


class RequestCancelledError(NetworkError):
    """Raised when the caller cancels an in-flight request."""

    pass


@dataclass
class GitHubRepository:
    """A repository item from the search endpoint."""

    full_name: str
    description: str = ""
    stargazers_count: int = 0
    language: str = ""
    license_spdx: str = ""
    topics: list[str] = field(default_factory=list)

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.full_name.split("/", 1)[1]

    @classmethod
    def from_json(cls, item: dict[str, Any]) -> "GitHubRepository":
        """Build from a search result item.

        Raises:
            ParseError: If ``full_name`` is missing or not ``owner/repo``
        """
        full_name = item.get("full_name")
        if not isinstance(full_name, str) or full_name.count("/") != 1 or full_name.startswith("/") or full_name.endswith("/"):
            raise ParseError(f"Invalid repository format: {full_name!r}")
        license_info = item.get("license") or {}
        return cls(
            full_name=full_name,
            description=item.get("description") or "",
            stargazers_count=int(item.get("stargazers_count") or 0),
            language=item.get("language") or "",
            license_spdx=license_info.get("spdx_id") or "",
            topics=[t for t in (item.get("topics") or []) if isinstance(t, str)],
        )


@dataclass
class GitHubRelease:
    """A release, or a tag standing in for one."""

    tag_name: str
    name: str = ""
    body: str = ""
    published_at: str = ""
    assets: list[dict[str, Any]] = field(default_factory=list)


def cancellable_get(
    session: requests.Session,
    url: str,
    params: Optional[dict[str, str]] = None,
    timeout: float = 10.0,
    cancel_event: Optional[threading.Event] = None,
    check_interval: float = CANCEL_CHECK_INTERVAL,
) -> requests.Response:
    """Make an HTTP GET that honors a timeout and a cancel event.

    The request runs in a daemon thread; this function polls for its
    result and gives up when the deadline passes or ``cancel_event`` is set.

    Args:
        session: Session used for the request
        url: URL to GET
        params: Query parameters
        timeout: Overall timeout in seconds (also passed to requests)
        cancel_event: Set by the caller to abandon the request
        check_interval: How often to check for cancellation (seconds)

    Returns:
        requests.Response (any status code)

    Raises:
        RequestCancelledError: If cancel_event was set
        NetworkError: On transport failure or timeout
    """
    result_queue: "queue.Queue[requests.Response | Exception]" = queue.Queue()

    def http_worker() -> None:
        try:
            result_queue.put(session.get(url, params=params, headers=_HEADERS, timeout=timeout))
        except Exception as e:
            result_queue.put(e)

    worker_thread = threading.Thread(target=http_worker, name="GitHubHTTPWorker", daemon=True)
    worker_thread.start()

    deadline = time.monotonic() + timeout
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelledError(f"Request cancelled: {url}")

        try:
            result = result_queue.get(timeout=check_interval)
        except queue.Empty:
            if time.monotonic() > deadline:
                raise NetworkError(f"Request timed out after {timeout:.1f}s: {url}")
            if not worker_thread.is_alive() and result_queue.empty():
                raise NetworkError(f"HTTP worker thread died unexpectedly: {url}")
            continue

        if isinstance(result, Exception):
            raise NetworkError(f"Request failed: {url}: {result}") from result
        return result


class GitHubClient:
    """Thin client over the GitHub REST endpoints used by the resolver."""

    def __init__(
        self,
        base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL without trailing slash
            timeout: Per-request timeout in seconds
            session: Optional session (tests pass a mock)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def _get(self, path: str, params: Optional[dict[str, str]] = None, cancel_event: Optional[threading.Event] = None) -> requests.Response:
        return cancellable_get(self.session, f"{self.base_url}{path}", params=params, timeout=self.timeout, cancel_event=cancel_event)

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Failed to parse JSON from {response.url}: {e}")

    @staticmethod
    def _check_status(response: requests.Response) -> None:
        if response.status_code != 200:
            raise NetworkError(f"GitHub API returned status {response.status_code} for {response.url}")

    def search_repositories(self, name: str, toolkit: str = "Arduino", cancel_event: Optional[threading.Event] = None) -> list[GitHubRepository]:
        """Search repositories for ``"<name> <toolkit> library"`` by stars.

        Args:
            name: Library name
            toolkit: Toolkit word included in the query
            cancel_event: Optional cancellation token

        Returns:
            Well-formed matching repositories, most starred first;
            malformed items are skipped

        Raises:
            NetworkError: On transport or status failure
            ParseError: On malformed JSON
        """
        params = {"q": f"{name} {toolkit} library", "sort": "stars", "order": "desc"}
        response = self._get("/search/repositories", params=params, cancel_event=cancel_event)
        self._check_status(response)
        data = self._json(response)
        if not isinstance(data, dict) or not isinstance(data.get("items", []), list):
            raise ParseError("Unexpected search response shape")
        repositories: list[GitHubRepository] = []
        for item in data.get("items", []):
            if not isinstance(item, dict):
                continue
            try:
                repositories.append(GitHubRepository.from_json(item))
            except (ParseError, TypeError, ValueError, AttributeError) as e:
                logger.debug(f"Skipping malformed search result for {name}: {e}")
        return repositories

    def get_latest_release(self, owner: str, repo: str, cancel_event: Optional[threading.Event] = None) -> GitHubRelease:
        """Get the latest release, falling back to the newest tag on 404.

        Raises:
            NetworkError: On transport or status failure, or no tags
            ParseError: On malformed JSON
        """
        response = self._get(f"/repos/{owner}/{repo}/releases/latest", cancel_event=cancel_event)
        if response.status_code == 404:
            logger.debug(f"No releases for {owner}/{repo}, trying tags")
            return self.get_latest_tag(owner, repo, cancel_event=cancel_event)
        self._check_status(response)

        data = self._json(response)
        if not isinstance(data, dict) or not data.get("tag_name"):
            raise ParseError(f"Release for {owner}/{repo} has no tag_name")
        return GitHubRelease(
            tag_name=data["tag_name"],
            name=data.get("name") or "",
            body=data.get("body") or "",
            published_at=data.get("published_at") or "",
            assets=list(data.get("assets") or []),
        )

    def get_latest_tag(self, owner: str, repo: str, cancel_event: Optional[threading.Event] = None) -> GitHubRelease:
        """Get the newest tag as a release (the API lists tags newest first).

        Raises:
            NetworkError: On transport or status failure, or no tags
            ParseError: On malformed JSON
        """
        response = self._get(f"/repos/{owner}/{repo}/tags", cancel_event=cancel_event)
        self._check_status(response)

        data = self._json(response)
        if not isinstance(data, list):
            raise ParseError(f"Unexpected tags response for {owner}/{repo}")
        if not data:
            raise NetworkError(f"No tags found for {owner}/{repo}")
        first = data[0]
        if not isinstance(first, dict) or not first.get("name"):
            raise ParseError(f"Tag entry for {owner}/{repo} has no name")
        return GitHubRelease(tag_name=first["name"], name=first["name"])
