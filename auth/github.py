"""
auth/github.py -- GitHub-backed identity provider.

The bearer token a client sends with each request is a GitHub token (the
cargo credential provider in credential.py hands over `gh auth token`). cratehold
never stores it; it is used to ask GitHub who the caller is and which
organizations they belong to.

Round trips:
  current_login(token)      GET /user                    -> login
  org_members(token, org)   GET /orgs/{org}/members      -> [login, ...]
                            (follows Link: rel="next", 100 per page)
  get_user(token, login)    GET /users/{login}           -> RegistryUser

requests is blocking, so each call runs through asyncio.to_thread. Any
failure to get a usable answer raises IdentityError, carrying the upstream
status when there was one. AuthPolicy turns that into a deny.

Layer rule: no imports from api/, registry/, storage/, or cache/.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests

from auth.models import RegistryUser

logger = logging.getLogger("cratehold.auth.github")

_GITHUB_API = "https://api.github.com"
_TIMEOUT = 10
_PER_PAGE = 100


class IdentityError(Exception):
    """Identity provider could not answer. `status` is the upstream HTTP status, if any."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class IdentityProvider(ABC):
    @abstractmethod
    async def current_login(self, token: str) -> str: ...

    @abstractmethod
    async def org_members(self, token: str, org: str) -> list[str]: ...

    @abstractmethod
    async def get_user(self, token: str, login: str) -> RegistryUser: ...


class GitHubIdentityProvider(IdentityProvider):
    def __init__(self, api_url: str = _GITHUB_API, session: Optional[requests.Session] = None) -> None:
        self.api_url = api_url.rstrip("/")
        self._session = session if session is not None else requests.Session()
        # Known public API; a long redirect chain is never legitimate.
        self._session.max_redirects = 3

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "cratehold",
        }

    def _get(self, url: str, token: str, params: Optional[dict] = None) -> requests.Response:
        try:
            resp = self._session.get(url, headers=self._headers(token), params=params, timeout=_TIMEOUT)
        except requests.RequestException as exc:
            raise IdentityError(f"GitHub request failed: {exc}") from exc
        if not resp.ok:
            raise IdentityError(f"GitHub answered {resp.status_code} for {url}", status=resp.status_code)
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise IdentityError(f"GitHub returned invalid JSON: {exc}") from exc

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _current_login(self, token: str) -> str:
        data = self._json(self._get(f"{self.api_url}/user", token))
        login = data.get("login") if isinstance(data, dict) else None
        if not isinstance(login, str):
            raise IdentityError("GitHub /user response has no login")
        return login

    def _org_members(self, token: str, org: str) -> list[str]:
        members: list[str] = []
        url: Optional[str] = f"{self.api_url}/orgs/{org}/members"
        params: Optional[dict] = {"per_page": _PER_PAGE}
        while url:
            resp = self._get(url, token, params)
            page = self._json(resp)
            if not isinstance(page, list):
                raise IdentityError(f"GitHub members response for {org} is not a list")
            members.extend(m["login"] for m in page if isinstance(m, dict) and "login" in m)
            # The next link already carries the query string.
            url = resp.links.get("next", {}).get("url")
            params = None
        logger.debug("fetched %d members of %s", len(members), org)
        return members

    def _get_user(self, token: str, login: str) -> RegistryUser:
        data = self._json(self._get(f"{self.api_url}/users/{login}", token))
        try:
            return RegistryUser(id=int(data["id"]), login=str(data["login"]), name=data.get("name"))
        except (KeyError, TypeError, ValueError) as exc:
            raise IdentityError(f"GitHub user response for {login} is malformed: {exc}") from exc

    # ------------------------------------------------------------------
    # IdentityProvider
    # ------------------------------------------------------------------

    async def current_login(self, token: str) -> str:
        return await asyncio.to_thread(self._current_login, token)

    async def org_members(self, token: str, org: str) -> list[str]:
        return await asyncio.to_thread(self._org_members, token, org)

    async def get_user(self, token: str, login: str) -> RegistryUser:
        return await asyncio.to_thread(self._get_user, token, login)
