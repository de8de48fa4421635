"""Auth0 provider: users and their login events."""

from __future__ import annotations

import logging
from typing import Optional

from scripts.auth_sync.base_provider import BaseProvider
from scripts.auth_sync.client import Auth0Client
from scripts.auth_sync.config import SyncConfig
from scripts.auth_sync.db import UpsertSink
from scripts.auth_sync.models import FetchError, User
from scripts.auth_sync.normalizer import to_auth_user

logger = logging.getLogger("auth_sync.auth0")


class Auth0UsersProvider(BaseProvider):
    PROVIDER_NAME = "auth0"
    RECORD_KEYS = ("users", "logins")

    def __init__(
        self,
        config: SyncConfig,
        db: UpsertSink,
        client: Optional[Auth0Client] = None,
    ) -> None:
        super().__init__(config, db)
        self._client = client or Auth0Client(config.auth0)
        self._rules = config.company_rules
        self._fail_on_fetch_error = config.fail_on_fetch_error

    def sync(self) -> dict[str, int]:
        counts = {
            "users": 0,
            "logins": 0,
            "page_fetch_failures": 0,
            "log_fetch_failures": 0,
            "rate_limited": 0,
        }
        self._client.fetch_token()

        users = self._fetch_all_users(counts)
        for user in users:
            self._sync_user(user, counts)
        return counts

    def _fetch_all_users(self, counts: dict[str, int]) -> list[User]:
        """Request pages 0, 1, 2, ... until one comes back empty."""
        users: list[User] = []
        page = 0
        while True:
            if page > 0:
                self._rate_limit_sleep()
            result = self._client.get_users_page(page)
            if not result.ok:
                counts["page_fetch_failures"] += 1
                if self._fail_on_fetch_error:
                    raise FetchError(
                        f"fetching users page {page} failed with status {result.status_code}"
                    )
                # Treated as the end of the user list; later pages are not fetched.
                logger.warning(
                    "Stopping pagination after failed page fetch",
                    extra={"provider": self.PROVIDER_NAME, "page": page},
                )
                break
            if not result.items:
                break
            users.extend(result.items)
            page += 1

        logger.info(
            "Fetched %d users in %d pages",
            len(users),
            page,
            extra={"provider": self.PROVIDER_NAME, "records": len(users)},
        )
        return users

    def _sync_user(self, user: User, counts: dict[str, int]) -> None:
        result = self._client.get_user_logs(user.user_id)
        self._rate_limit_sleep()
        if not result.ok:
            counts["log_fetch_failures"] += 1
            if result.rate_limited:
                counts["rate_limited"] += 1
            if self._fail_on_fetch_error:
                raise FetchError(
                    f"fetching logs for {user.user_id} failed with status {result.status_code}"
                )

        auth_user = to_auth_user(user, self._rules)
        # Logs are sorted newest first.
        if result.items:
            auth_user.last_application_accessed = result.items[0].client_name

        self.db.upsert_auth_user(auth_user)
        counts["users"] += 1

        for login in result.items:
            login.email = user.email
            self.db.upsert_auth_user_login(login)
            counts["logins"] += 1
