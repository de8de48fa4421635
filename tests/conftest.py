"""Shared fixtures: payload factories, a fake Auth0 API and an in-memory sink."""

import re
from typing import Optional
from urllib.parse import quote

import pytest
import responses
from responses import matchers

from scripts.auth_sync.config import Auth0Config, SyncConfig

# pylint: disable=redefined-outer-name

BASE_URL = "https://oxide.auth0.com"


@pytest.fixture
def auth0_config():
    return Auth0Config(client_id="cid", client_secret="csecret", domain="oxide")


@pytest.fixture
def sync_config(auth0_config):
    """Config with the rate-limit sleep disabled"""
    return SyncConfig(auth0=auth0_config, rate_limit_sleep_ms=0)


@pytest.fixture
def make_user():
    """Factory for GET /api/v2/users entries"""

    def _make_user(
        user_id="auth0|1",
        email="jane@example.com",
        company="",
        identities=None,
        **extra,
    ):
        if identities is None:
            identities = [
                {
                    "provider": "github",
                    "user_id": 1234,
                    "connection": "github",
                    "isSocial": True,
                }
            ]
        data = {
            "user_id": user_id,
            "email": email,
            "email_verified": True,
            "name": "Jane Doe",
            "nickname": "jane",
            "identities": identities,
            "created_at": "2020-11-02T17:01:13.417Z",
            "updated_at": "2021-05-07T01:19:09.000Z",
            "last_login": "2021-05-07T01:19:09.000Z",
            "last_ip": "10.0.0.1",
            "logins_count": 7,
            "company": company,
        }
        data.update(extra)
        return data

    return _make_user


@pytest.fixture
def make_login():
    """Factory for GET /api/v2/users/{id}/logs entries"""

    def _make_login(log_id="90020210507", client_name="Console", user_id="auth0|1", **extra):
        data = {
            "date": "2021-05-07T01:19:09.417Z",
            "type": "s",
            "description": "Successful login",
            "connection": "github",
            "connection_id": "con_abc",
            "client_id": "client_abc",
            "client_name": client_name,
            "ip": "10.0.0.1",
            "hostname": "oxide.auth0.com",
            "user_id": user_id,
            "user_name": "jane",
            "strategy": "github",
            "strategy_type": "social",
            "log_id": log_id,
            "isMobile": False,
            "user_agent": "Firefox 88.0.0 / Linux 0.0.0",
        }
        data.update(extra)
        return data

    return _make_login


def logs_url(user_id: str) -> re.Pattern:
    return re.compile(
        re.escape(f"{BASE_URL}/api/v2/users/{quote(user_id, safe='')}/logs") + r"(\?.*)?$"
    )


class FakeAuth0Api:
    """Registers Auth0 Management API endpoints on a RequestsMock"""

    def __init__(self, rsps: responses.RequestsMock, page_size: int = 20) -> None:
        self.rsps = rsps
        self.page_size = page_size

    def token(self, access_token="tok", status=200):
        self.rsps.add(
            responses.POST,
            f"{BASE_URL}/oauth/token",
            json={"access_token": access_token, "token_type": "Bearer"},
            status=status,
        )

    def users_page(self, page: int, users: list, status: int = 200, body: Optional[str] = None):
        kwargs = {"body": body} if body is not None else {"json": users}
        self.rsps.add(
            responses.GET,
            f"{BASE_URL}/api/v2/users",
            status=status,
            match=[
                matchers.query_param_matcher(
                    {
                        "per_page": str(self.page_size),
                        "page": str(page),
                        "sort": "last_login:-1",
                    }
                )
            ],
            **kwargs,
        )

    def user_logs(self, user_id: str, logs: list, status: int = 200, headers=None):
        self.rsps.add(
            responses.GET,
            logs_url(user_id),
            json=logs if status == 200 else {"message": "error"},
            status=status,
            headers=headers,
        )

    def page_calls(self) -> list:
        return [
            c for c in self.rsps.calls if c.request.url.startswith(f"{BASE_URL}/api/v2/users?")
        ]


@pytest.fixture
def mocked_responses():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def auth0_api(mocked_responses):
    return FakeAuth0Api(mocked_responses)


class InMemorySink:
    """UpsertSink keeping rows in dicts keyed like the real tables"""

    def __init__(self) -> None:
        self.users = {}
        self.logins = {}
        self.runs = {}
        self.upsert_calls = []

    def upsert_auth_user(self, auth_user):
        self.upsert_calls.append(("user", auth_user.user_id))
        self.users[auth_user.user_id] = auth_user
        return 1

    def upsert_auth_user_login(self, login):
        self.upsert_calls.append(("login", login.log_id))
        self.logins[(login.user_id, login.log_id)] = login
        return 1

    def record_run_start(self, provider, metadata=None):
        run_id = f"run-{len(self.runs) + 1}"
        self.runs[run_id] = {"provider": provider, "status": "RUNNING"}
        return run_id

    def record_run_end(
        self, run_id, status, records_upserted=0, error_message=None, error_detail=None
    ):
        self.runs[run_id].update(
            status=status, records_upserted=records_upserted, error_message=error_message
        )


@pytest.fixture
def sink():
    return InMemorySink()
