"""Configuration via environment variables (and an optional .env file).

Built once by load_config() and passed explicitly to the client, the
provider and the database wrapper.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from scripts.auth_sync.normalizer import DEFAULT_COMPANY_RULES, CompanyRule
from scripts.auth_sync.secrets import resolve_database_url, resolve_secret


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    min_connections: int = 1
    max_connections: int = 4


@dataclass(frozen=True)
class Auth0Config:
    client_id: str
    client_secret: str
    domain: str = "oxide"
    page_size: int = 20
    logs_per_page: int = 100
    request_timeout_s: float = 30.0

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}.auth0.com"

    @property
    def audience(self) -> str:
        return f"{self.base_url}/api/v2/"


@dataclass(frozen=True)
class SyncConfig:
    auth0: Auth0Config
    database: Optional[DatabaseConfig] = None
    # Auth0 management API rate limits, see
    # https://auth0.com/docs/policies/rate-limit-policy/management-api-endpoint-rate-limits
    rate_limit_sleep_ms: int = 2000
    fail_on_fetch_error: bool = False
    company_rules: tuple[CompanyRule, ...] = DEFAULT_COMPANY_RULES

    @property
    def rate_limit_sleep_s(self) -> float:
        return self.rate_limit_sleep_ms / 1000.0


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_company_rules(path: str) -> tuple[CompanyRule, ...]:
    """Read an ordered list of company rules from a JSON file.

    Format: [{"replacement": "@acme", "email_domains": ["acme.com"], "companies": ["Acme"]}, ...]
    """
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, list):
        raise ValueError(f"{path}: company rules must be a JSON list")
    return tuple(CompanyRule.from_dict(r) for r in data)


def load_config(require_database: bool = True) -> SyncConfig:
    """Load configuration from environment variables.

    CIO_AUTH0_CLIENT_ID and CIO_AUTH0_CLIENT_SECRET are required; the secret
    may be a cloud secret reference.
    """
    load_dotenv()

    client_id = os.environ.get("CIO_AUTH0_CLIENT_ID", "")
    if not client_id:
        raise ValueError("CIO_AUTH0_CLIENT_ID environment variable is required")
    client_secret_raw = os.environ.get("CIO_AUTH0_CLIENT_SECRET", "")
    if not client_secret_raw:
        raise ValueError("CIO_AUTH0_CLIENT_SECRET environment variable is required")

    auth0 = Auth0Config(
        client_id=client_id,
        client_secret=resolve_secret(client_secret_raw),
        domain=os.environ.get("AUTH0_DOMAIN", "oxide"),
        page_size=int(os.environ.get("AUTH0_PAGE_SIZE", "20")),
        logs_per_page=int(os.environ.get("AUTH0_LOGS_PER_PAGE", "100")),
        request_timeout_s=float(os.environ.get("AUTH0_REQUEST_TIMEOUT_S", "30")),
    )

    database = None
    if require_database:
        database = DatabaseConfig(
            url=resolve_database_url(),
            min_connections=int(os.environ.get("DB_MIN_CONNECTIONS", "1")),
            max_connections=int(os.environ.get("DB_MAX_CONNECTIONS", "4")),
        )

    rules = DEFAULT_COMPANY_RULES
    rules_file = os.environ.get("AUTH0_COMPANY_RULES_FILE")
    if rules_file:
        rules = load_company_rules(rules_file)

    return SyncConfig(
        auth0=auth0,
        database=database,
        rate_limit_sleep_ms=int(os.environ.get("AUTH0_RATE_LIMIT_SLEEP_MS", "2000")),
        fail_on_fetch_error=_env_bool("AUTH0_FAIL_ON_FETCH_ERROR"),
        company_rules=rules,
    )
