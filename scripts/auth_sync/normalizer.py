"""Map Auth0 users onto auth_users rows, including company cleanup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from scripts.auth_sync.models import AuthUser, MissingIdentityError, User


@dataclass(frozen=True)
class CompanyRule:
    """Rewrite the company field to ``replacement`` when either matcher hits.

    ``email_domains`` match on the email suffix ``@<domain>``; ``companies``
    match the trimmed company field exactly.
    """

    replacement: str
    email_domains: tuple[str, ...] = ()
    companies: tuple[str, ...] = ()

    def matches(self, email: str, company: str) -> bool:
        if any(email.endswith(f"@{d}") for d in self.email_domains):
            return True
        return company in self.companies

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompanyRule":
        return cls(
            replacement=data["replacement"],
            email_domains=tuple(data.get("email_domains", ())),
            companies=tuple(data.get("companies", ())),
        )


# Evaluated top to bottom, first match wins.
DEFAULT_COMPANY_RULES: tuple[CompanyRule, ...] = (
    CompanyRule(
        replacement="@oxidecomputer",
        email_domains=("oxidecomputer.com", "oxide.computer"),
        companies=("Oxide Computer Company",),
    ),
    CompanyRule(replacement="@bench", email_domains=("bench.com",)),
    CompanyRule(replacement="@algolia", companies=("Algolia",)),
    # Empty and junk values parsed out of GitHub profiles
    CompanyRule(replacement="", companies=("", "TBD", "0xF9BA143B95FF6D82")),
)


def clean_company(
    company: str,
    email: str,
    rules: Sequence[CompanyRule] = DEFAULT_COMPANY_RULES,
) -> str:
    trimmed = company.strip()
    for rule in rules:
        if rule.matches(email, trimmed):
            return rule.replacement.strip()
    return trimmed


def to_auth_user(
    user: User,
    rules: Sequence[CompanyRule] = DEFAULT_COMPANY_RULES,
) -> AuthUser:
    """Convert an Auth0 user into an AuthUser.

    Raises MissingIdentityError if the user has no identities, since the
    login provider comes from the first one.
    """
    if not user.identities:
        raise MissingIdentityError(user.user_id)

    return AuthUser(
        user_id=user.user_id,
        name=user.name,
        nickname=user.nickname,
        username=user.username,
        email=user.email,
        email_verified=user.email_verified,
        picture=user.picture,
        company=clean_company(user.company, user.email, rules),
        blog=user.blog,
        phone=user.phone_number,
        phone_verified=user.phone_verified,
        locale=user.locale,
        login_provider=user.identities[0].provider,
        created_at=user.created_at,
        updated_at=user.updated_at,
        last_login=user.last_login,
        last_ip=user.last_ip,
        logins_count=user.logins_count,
    )
