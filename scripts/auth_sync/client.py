"""Auth0 Management API client: token, user pages, per-user login logs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import quote

import requests

from scripts.auth_sync.config import Auth0Config
from scripts.auth_sync.models import AuthUserLogin, FetchResult, RateLimit, Token, User

logger = logging.getLogger("auth_sync.client")

_UNITS = (
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


def humanize_until(when: datetime, now: Optional[datetime] = None) -> str:
    """Describe ``when`` relative to ``now``: "in 3 minutes", "40 seconds ago"."""
    now = now or datetime.now(timezone.utc)
    seconds = int((when - now).total_seconds())
    remaining = abs(seconds)
    if remaining == 0:
        return "now"
    for name, size in _UNITS:
        if remaining >= size:
            count = remaining // size
            text = f"{count} {name}{'' if count == 1 else 's'}"
            break
    return f"in {text}" if seconds > 0 else f"{text} ago"


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimit:
    """Read the x-ratelimit-* headers. Missing or garbled values become None."""

    def _int(name: str) -> Optional[int]:
        try:
            return int(headers.get(name))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None

    reset_epoch = _int("x-ratelimit-reset")
    reset = None
    if reset_epoch is not None:
        try:
            reset = datetime.fromtimestamp(reset_epoch, timezone.utc)
        except (OverflowError, OSError, ValueError):
            reset = None
    return RateLimit(
        limit=_int("x-ratelimit-limit"),
        remaining=_int("x-ratelimit-remaining"),
        reset=reset,
    )


class Auth0Client:
    """Thin wrapper around a requests.Session bound to one Auth0 tenant."""

    def __init__(
        self, config: Auth0Config, session: Optional[requests.Session] = None
    ) -> None:
        self._config = config
        self._base = config.base_url
        self._timeout = config.request_timeout_s
        self._session = session or requests.Session()
        self.token: Optional[Token] = None

    def close(self) -> None:
        self._session.close()

    def fetch_token(self) -> Token:
        """Exchange the client credentials for a Management API token.

        Any failure here is fatal for the run and propagates unchanged.
        """
        resp = self._session.post(
            f"{self._base}/oauth/token",
            json={
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "audience": self._config.audience,
                "grant_type": "client_credentials",
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()
        token = Token.from_dict(resp.json())
        self.token = token
        self._session.headers["Authorization"] = f"Bearer {token.access_token}"
        logger.info("Fetched %s token for %s", token.token_type, self._config.domain)
        return token

    def _get(self, path: str, params: dict[str, Any]) -> requests.Response:
        if self.token is None:
            raise RuntimeError("fetch_token() must be called before API requests")
        return self._session.get(
            f"{self._base}{path}", params=params, timeout=self._timeout
        )

    def get_users_page(self, page: int) -> FetchResult[User]:
        """Fetch one page of users, most recent login first."""
        resp = self._get(
            "/api/v2/users",
            {
                "per_page": str(self._config.page_size),
                "page": str(page),
                "sort": "last_login:-1",
            },
        )
        if not resp.ok:
            logger.warning(
                "getting auth0 users failed, status: %d | resp: %s",
                resp.status_code,
                resp.text,
                extra={"page": page, "status": resp.status_code},
            )
            return FetchResult(items=[], status_code=resp.status_code, ok=False)

        users = [User.from_dict(u) for u in resp.json()]
        logger.debug(
            "Fetched %d users", len(users), extra={"page": page, "records": len(users)}
        )
        return FetchResult(items=users, status_code=resp.status_code)

    def get_user_logs(self, user_id: str) -> FetchResult[AuthUserLogin]:
        """Fetch the most recent login-log entries for one user, newest first."""
        resp = self._get(
            f"/api/v2/users/{quote(user_id, safe='')}/logs",
            {"sort": "date:-1", "per_page": str(self._config.logs_per_page)},
        )
        if resp.status_code == 429:
            rate_limit = parse_rate_limit(resp.headers)
            reset = humanize_until(rate_limit.reset) if rate_limit.reset else "unknown"
            logger.warning(
                "getting auth0 user logs failed because of rate limit: %s, remaining: %s, reset: %s",
                rate_limit.limit if rate_limit.limit is not None else "unknown",
                rate_limit.remaining if rate_limit.remaining is not None else "unknown",
                reset,
                extra={"user_id": user_id, "status": 429},
            )
            return FetchResult(
                items=[], status_code=429, ok=False, rate_limit=rate_limit
            )
        if not resp.ok:
            logger.warning(
                "getting auth0 user logs failed, status: %d | resp: %s",
                resp.status_code,
                resp.text,
                extra={"user_id": user_id, "status": resp.status_code},
            )
            return FetchResult(items=[], status_code=resp.status_code, ok=False)

        logins = [AuthUserLogin.from_dict(entry) for entry in resp.json()]
        return FetchResult(items=logins, status_code=resp.status_code)
