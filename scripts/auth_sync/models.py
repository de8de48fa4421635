"""Records exchanged with the Auth0 Management API and written to the sink."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from dateutil.parser import isoparse

T = TypeVar("T")


class MissingIdentityError(ValueError):
    """Raised when a user carries no identity to take the login provider from."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Auth0 user {user_id} has no identities")
        self.user_id = user_id


class FetchError(RuntimeError):
    """A page or log fetch failed and the run is configured to abort on it."""


@dataclass(frozen=True)
class Token:
    access_token: str
    token_type: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Token":
        return cls(access_token=data["access_token"], token_type=data["token_type"])


@dataclass(frozen=True)
class Identity:
    provider: str
    user_id: str
    connection: str
    is_social: bool
    access_token: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Identity":
        return cls(
            provider=data["provider"],
            # Auth0 returns numeric ids for some social providers
            user_id=str(data["user_id"]),
            connection=data["connection"],
            is_social=data["isSocial"],
            access_token=data.get("access_token", ""),
        )


@dataclass(frozen=True)
class User:
    """A user as returned by GET /api/v2/users."""

    user_id: str
    email: str
    name: str
    nickname: str
    identities: list[Identity]
    created_at: datetime
    updated_at: datetime
    last_login: datetime
    last_ip: str
    logins_count: int
    email_verified: bool = False
    username: str = ""
    family_name: str = ""
    given_name: str = ""
    picture: str = ""
    phone_number: str = ""
    phone_verified: bool = False
    locale: str = ""
    blog: str = ""
    company: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            user_id=data["user_id"],
            email=data["email"],
            name=data["name"],
            nickname=data["nickname"],
            identities=[Identity.from_dict(i) for i in data["identities"]],
            created_at=isoparse(data["created_at"]),
            updated_at=isoparse(data["updated_at"]),
            last_login=isoparse(data["last_login"]),
            last_ip=data["last_ip"],
            logins_count=int(data["logins_count"]),
            email_verified=data.get("email_verified", False),
            username=data.get("username", ""),
            family_name=data.get("family_name", ""),
            given_name=data.get("given_name", ""),
            picture=data.get("picture", ""),
            phone_number=data.get("phone_number", ""),
            phone_verified=data.get("phone_verified", False),
            locale=data.get("locale", ""),
            blog=data.get("blog", ""),
            company=data.get("company", ""),
        )


@dataclass
class AuthUser:
    """Normalized user row for the auth_users table."""

    user_id: str
    name: str
    nickname: str
    username: str
    email: str
    email_verified: bool
    picture: str
    company: str
    blog: str
    phone: str
    phone_verified: bool
    locale: str
    login_provider: str
    created_at: datetime
    updated_at: datetime
    last_login: datetime
    last_ip: str
    logins_count: int
    last_application_accessed: str = ""
    link_to_people: list[str] = field(default_factory=list)
    link_to_auth_user_logins: list[str] = field(default_factory=list)
    link_to_page_views: list[str] = field(default_factory=list)


@dataclass
class AuthUserLogin:
    """One login-log entry from GET /api/v2/users/{id}/logs.

    ``email`` is not part of the log payload; it is stamped from the owning
    user before the row is upserted.
    """

    date: datetime
    log_id: str = ""
    type: str = ""
    description: str = ""
    connection: str = ""
    connection_id: str = ""
    client_id: str = ""
    client_name: str = ""
    ip: str = ""
    hostname: str = ""
    user_id: str = ""
    user_name: str = ""
    email: str = ""
    audience: str = ""
    scope: str = ""
    strategy: str = ""
    strategy_type: str = ""
    is_mobile: bool = False
    user_agent: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthUserLogin":
        scope = data.get("scope") or ""
        if isinstance(scope, list):
            scope = " ".join(scope)
        return cls(
            date=isoparse(data["date"]),
            log_id=data.get("log_id") or data.get("_id", ""),
            type=data.get("type", ""),
            description=data.get("description") or "",
            connection=data.get("connection", ""),
            connection_id=data.get("connection_id", ""),
            client_id=data.get("client_id", ""),
            client_name=data.get("client_name", ""),
            ip=data.get("ip", ""),
            hostname=data.get("hostname", ""),
            user_id=data.get("user_id", ""),
            user_name=data.get("user_name", ""),
            audience=data.get("audience", ""),
            scope=scope,
            strategy=data.get("strategy", ""),
            strategy_type=data.get("strategy_type", ""),
            is_mobile=data.get("isMobile", False),
            user_agent=data.get("user_agent", ""),
        )


@dataclass(frozen=True)
class RateLimit:
    """Values of the x-ratelimit-* response headers. None when absent or unparseable."""

    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset: Optional[datetime] = None


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of one API fetch.

    An empty ``items`` with ``ok=True`` means the API legitimately had nothing;
    ``ok=False`` means the request failed and the items were dropped.
    """

    items: list[T]
    status_code: int
    ok: bool = True
    rate_limit: Optional[RateLimit] = None

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429
