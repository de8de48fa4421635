"""Tests for scripts.auth_sync.client"""

import logging
from datetime import datetime, timedelta, timezone

import pytest
import requests
import responses
from responses import matchers

from scripts.auth_sync.client import Auth0Client, humanize_until, parse_rate_limit
from scripts.auth_sync.models import RateLimit

from conftest import BASE_URL

# pylint: disable=redefined-outer-name


@pytest.fixture
def client(auth0_config):
    return Auth0Client(auth0_config)


@pytest.fixture
def authed_client(client, auth0_api):
    auth0_api.token()
    client.fetch_token()
    return client


def test_fetch_token(client, mocked_responses):
    mocked_responses.add(
        responses.POST,
        f"{BASE_URL}/oauth/token",
        json={"access_token": "tok", "token_type": "Bearer"},
        match=[
            matchers.json_params_matcher(
                {
                    "client_id": "cid",
                    "client_secret": "csecret",
                    "audience": f"{BASE_URL}/api/v2/",
                    "grant_type": "client_credentials",
                }
            )
        ],
    )
    token = client.fetch_token()
    assert token.access_token == "tok"
    assert token.token_type == "Bearer"
    assert client.token == token


def test_fetch_token_http_error_is_fatal(client, auth0_api):
    auth0_api.token(status=401)
    with pytest.raises(requests.HTTPError):
        client.fetch_token()


def test_fetch_token_malformed_body_is_fatal(client, mocked_responses):
    mocked_responses.add(responses.POST, f"{BASE_URL}/oauth/token", body="<html>")
    with pytest.raises(ValueError):
        client.fetch_token()


def test_fetch_token_missing_field_is_fatal(client, mocked_responses):
    mocked_responses.add(
        responses.POST, f"{BASE_URL}/oauth/token", json={"token_type": "Bearer"}
    )
    with pytest.raises(KeyError):
        client.fetch_token()


def test_requests_need_a_token(client):
    with pytest.raises(RuntimeError):
        client.get_users_page(0)


def test_get_users_page(authed_client, auth0_api, make_user):
    auth0_api.users_page(0, [make_user(), make_user(user_id="auth0|2")])

    result = authed_client.get_users_page(0)

    assert result.ok
    assert result.status_code == 200
    assert [u.user_id for u in result.items] == ["auth0|1", "auth0|2"]
    assert result.items[0].identities[0].user_id == "1234"
    call = auth0_api.page_calls()[0]
    assert call.request.headers["Authorization"] == "Bearer tok"


def test_get_users_page_empty_is_ok(authed_client, auth0_api):
    auth0_api.users_page(3, [])
    result = authed_client.get_users_page(3)
    assert result.ok
    assert result.items == []


def test_get_users_page_failure(authed_client, auth0_api, caplog):
    auth0_api.users_page(0, [], status=500, body="upstream exploded")

    with caplog.at_level(logging.WARNING, logger="auth_sync.client"):
        result = authed_client.get_users_page(0)

    assert not result.ok
    assert result.items == []
    assert result.status_code == 500
    assert "status: 500 | resp: upstream exploded" in caplog.text


def test_get_users_page_malformed_json_is_fatal(authed_client, auth0_api):
    auth0_api.users_page(0, [], body="not json")
    with pytest.raises(ValueError):
        authed_client.get_users_page(0)


def test_get_user_logs(authed_client, auth0_api, make_login):
    auth0_api.user_logs(
        "auth0|1",
        [make_login(log_id="2", client_name="Console"), make_login(log_id="1", client_name="CIO")],
    )

    result = authed_client.get_user_logs("auth0|1")

    assert result.ok
    assert [login.client_name for login in result.items] == ["Console", "CIO"]
    assert result.items[0].email == ""
    request_url = auth0_api.rsps.calls[-1].request.url
    assert "/api/v2/users/auth0%7C1/logs?" in request_url
    assert "sort=date%3A-1" in request_url
    assert "per_page=100" in request_url


def test_get_user_logs_rate_limited(authed_client, auth0_api, caplog):
    reset = datetime.now(timezone.utc) + timedelta(minutes=5, seconds=30)
    auth0_api.user_logs(
        "auth0|1",
        [],
        status=429,
        headers={
            "x-ratelimit-limit": "10",
            "x-ratelimit-remaining": "0",
            "x-ratelimit-reset": str(int(reset.timestamp())),
        },
    )

    with caplog.at_level(logging.WARNING, logger="auth_sync.client"):
        result = authed_client.get_user_logs("auth0|1")

    assert not result.ok
    assert result.rate_limited
    assert result.items == []
    assert result.rate_limit.limit == 10
    assert result.rate_limit.remaining == 0
    assert result.rate_limit.reset == datetime.fromtimestamp(
        int(reset.timestamp()), timezone.utc
    )
    assert "rate limit: 10, remaining: 0, reset: in 5 minutes" in caplog.text


def test_get_user_logs_rate_limited_without_headers(authed_client, auth0_api, caplog):
    auth0_api.user_logs("auth0|1", [], status=429)

    with caplog.at_level(logging.WARNING, logger="auth_sync.client"):
        result = authed_client.get_user_logs("auth0|1")

    assert result.rate_limited
    assert result.rate_limit == RateLimit()
    assert "rate limit: unknown, remaining: unknown, reset: unknown" in caplog.text


def test_get_user_logs_failure(authed_client, auth0_api):
    auth0_api.user_logs("auth0|1", [], status=404)

    result = authed_client.get_user_logs("auth0|1")

    assert not result.ok
    assert not result.rate_limited
    assert result.rate_limit is None
    assert result.items == []


def test_parse_rate_limit_garbage():
    rate_limit = parse_rate_limit(
        {"x-ratelimit-limit": "ten", "x-ratelimit-remaining": "", "x-ratelimit-reset": "99999999999999999"}
    )
    assert rate_limit == RateLimit(limit=None, remaining=None, reset=None)


NOW = datetime(2021, 5, 7, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "offset, expected",
    [
        (timedelta(0), "now"),
        (timedelta(seconds=1), "in 1 second"),
        (timedelta(seconds=40), "in 40 seconds"),
        (timedelta(seconds=-40), "40 seconds ago"),
        (timedelta(minutes=3, seconds=20), "in 3 minutes"),
        (timedelta(hours=2), "in 2 hours"),
        (timedelta(days=-1, hours=-3), "1 day ago"),
    ],
)
def test_humanize_until(offset, expected):
    assert humanize_until(NOW + offset, now=NOW) == expected
