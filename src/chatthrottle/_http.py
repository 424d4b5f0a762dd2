"""
HTTP client abstraction used by the webhook transport.

Available implementations:
    - HttpClient: Abstract base class.
    - RequestsHttpClient: Default implementation backed by a `requests.Session`.

Example:
    >>> from chatthrottle._http import RequestsHttpClient
    >>> client = RequestsHttpClient(default_headers={"Authorization": "Bearer ..."})
    >>> response = client.post("https://chat.example.com/hooks/abc", data={"text": "hi"})
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, override

import requests

logger = logging.getLogger(__name__)


class HttpClient(ABC):
    """
    Abstract base class for HTTP clients.

    Only POST is needed: a chat webhook accepts one JSON document per
    outgoing message.

    Example:
        >>> class MyHttpClient(HttpClient):
        ...     def post(self, url, data=None, headers=None, timeout=10):
        ...         return requests.post(url, json=data, headers=headers, timeout=timeout)
    """

    @abstractmethod
    def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 10,
    ) -> requests.Response:
        """
        Execute a POST request with a JSON body.

        Args:
            url: The full URL to request.
            data: JSON-serializable data to send in the request body.
            headers: Additional headers to include.
            timeout: Request timeout in seconds.

        Returns:
            The HTTP response.

        Raises:
            requests.RequestException: If the HTTP request fails.
        """
        pass


class RequestsHttpClient(HttpClient):
    """
    HTTP client backed by a shared `requests.Session`.

    The session is created lazily and reused across calls; `requests`
    sessions are not guaranteed thread-safe, so posts are serialized with a
    lock. Only the drain thread posts in practice.

    Args:
        default_headers: Headers sent with every request (e.g. auth tokens).
        session: Optional pre-built session (useful in tests).
    """

    def __init__(
        self,
        default_headers: dict[str, str] | None = None,
        session: requests.Session | None = None,
    ):
        self.default_headers: dict[str, str] = dict(default_headers or {})
        self._session = session
        self._lock = threading.Lock()

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    @override
    def post(
        self,
        url: str,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: int = 10,
    ) -> requests.Response:
        assert url, "URL cannot be empty."
        assert timeout is not None, "Timeout cannot be None."
        assert timeout > 0, "Timeout must be greater than 0."

        merged_headers = {**self.default_headers, **(headers or {})}
        with self._lock:
            return self._get_session().post(
                url,
                json=data,
                headers=merged_headers,
                timeout=timeout,
            )

    def close(self) -> None:
        """Close the underlying session, if one was opened."""
        with self._lock:
            if self._session is not None:
                self._session.close()
                self._session = None
