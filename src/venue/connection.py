import logging
from enum import Enum
from json import JSONDecodeError
from typing import Any, Dict, List, Mapping, Tuple, Union

import requests  # type:ignore
from fastapi.testclient import TestClient
from requests import Session

from helpers.errors import ConfigurationError, SnapshotFetchError
from helpers.types.api import RateLimit
from helpers.types.auth import Auth
from helpers.types.common import URL

logger = logging.getLogger(__name__)


class Method(Enum):
    GET = "GET"


class SessionsWrapper:
    """This class provides a wrapper aroud the requests session class so that
    we can normalize the interface for the connection adapter"""

    def __init__(self, base_url: URL):
        self.base_url = base_url
        self._session = Session()

    def request(self, method: str, url: URL, *args, **kwargs):
        return self._session.request(method, self.base_url.add(url), *args, **kwargs)


class RateLimiter:
    """Ratelimiter for api requests

    This class provides a buffer between us and the venue
    so we don't burn through the venue's error budget"""

    def __init__(self, limits: List[RateLimit]):
        self._rate_limits = limits

    def check_limits(self):
        """Checks rate limits and makes sure we don't go over"""
        for rate_limit in self._rate_limits:
            rate_limit.check()


class Connection:
    """The purpose of this class is to establish a connection to the
    venue. You can pass in a test client so that we can
    test requests against a fake venue"""

    def __init__(
        self,
        auth: Auth,
        base_url: URL,
        api_version: URL,
        connection_adapter: TestClient | None = None,
        timeout_seconds: float = 30.0,
    ):
        self._auth = auth
        self._connection_adapter: Union[TestClient, SessionsWrapper]
        self._api_version = api_version.add_slash()
        self._timeout_seconds = timeout_seconds
        if connection_adapter:
            # This is a test connection. We don't need rate limiting
            self._connection_adapter = connection_adapter
            self._rate_limiter = RateLimiter(limits=[])
        else:
            self._connection_adapter = SessionsWrapper(base_url=base_url)
            # Well below the venue's error limit when pages are fetched in parallel
            self._rate_limiter = RateLimiter(
                [
                    RateLimit(transactions=20, seconds=1),
                    RateLimit(transactions=600, seconds=60),
                ]
            )

    def _request(
        self,
        method: Method,
        url: URL,
        params: Dict[str, str] | None = None,
        headers: Dict[str, str] | None = None,
        check_auth: bool = True,
    ) -> Tuple[Any, Mapping[str, str]]:
        """All HTTP requests go through this function. We make sure we hold a
        fresh credential before sending the request.

        Returns the decoded body and the response headers"""
        all_headers = {"accept": "application/json", **(headers or {})}
        if check_auth:
            all_headers["Authorization"] = self._check_auth()
        self._rate_limiter.check_limits()
        full_url = self._api_version.add(url)
        try:
            resp = self._connection_adapter.request(
                method=method.value,
                url=full_url,
                params=params,
                headers=all_headers,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as e:
            raise SnapshotFetchError(f"{method.value} {full_url} failed: {e}") from e

        if resp.status_code == 401:
            # Token was rejected. The next pass asks the provider again
            self._auth.remove_credentials()
            raise SnapshotFetchError(
                f"{method.value} {full_url} was not authorized", resp.status_code
            )
        if resp.status_code == 403:
            raise ConfigurationError(
                f"Account {self._auth.account_id} is not allowed to read {full_url}"
            )
        if resp.status_code >= 400:
            raise SnapshotFetchError(
                f"{method.value} {full_url} returned {resp.status_code}",
                resp.status_code,
            )

        try:
            return resp.json(), resp.headers
        except JSONDecodeError:
            return {}, resp.headers

    def get(
        self,
        url: URL,
        params: Dict[str, str] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> Tuple[Any, Mapping[str, str]]:
        return self._request(Method.GET, url, params=params, headers=headers)

    def _check_auth(self) -> str:
        """Checks to make sure we hold a usable credential and returns its
        header. Reads the shared credential once, page threads may drop it"""
        credential = self._auth.credential
        if credential is None or not credential.is_fresh():
            credential = self._auth.refresh()
        return credential.authorization_header()
