import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Protocol

from pydantic import ValidationError, field_validator

from helpers.constants import (
    ACCESS_TOKEN_ENV_VAR,
    REFRESH_TOKEN_ENV_VAR,
    STRUCTURE_MARKETS_SCOPE,
    TOKEN_EXPIRES_AT_ENV_VAR,
    TOKEN_SCOPES_ENV_VAR,
)
from helpers.errors import ConfigurationError
from helpers.types.api import ExternalApi
from helpers.types.common import NonNullStr, PositiveInt

logger = logging.getLogger(__name__)

# A credential this close to expiry counts as expired
TOKEN_EXPIRY_BUFFER = timedelta(seconds=60)


class AccountId(PositiveInt):
    """Account whose credential is used to read the order book"""


class Token(NonNullStr):
    """Bearer token used for sending requests"""


class RefreshToken(NonNullStr):
    """Secret that lets the credential provider mint new access tokens"""


class Scope(NonNullStr):
    """Permission attached to a token"""


class Credential(ExternalApi):
    account_id: AccountId
    access_token: Token
    expires_at: datetime
    scopes: List[Scope] = []
    refresh_token: RefreshToken | None = None

    @field_validator("expires_at")
    @classmethod
    def _expires_at_is_utc(cls, expires_at: datetime) -> datetime:
        if expires_at.tzinfo is None:
            return expires_at.replace(tzinfo=timezone.utc)
        return expires_at

    def is_fresh(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at > now + TOKEN_EXPIRY_BUFFER

    def authorization_header(self) -> str:
        return f"Bearer {self.access_token}"


class TokenProvider(Protocol):
    """Anything that can hand out a credential for an account.

    Token acquisition and refresh happen on the provider's side. Returns None
    when the account has no credential at all."""

    def get_credential(self, account_id: AccountId) -> Credential | None:
        ...


class StaticTokenProvider:
    """Serves credentials held in memory"""

    def __init__(self, credentials: List[Credential] | None = None):
        self._credentials: Dict[AccountId, Credential] = {
            c.account_id: c for c in credentials or []
        }

    def set_credential(self, credential: Credential):
        self._credentials[credential.account_id] = credential

    def get_credential(self, account_id: AccountId) -> Credential | None:
        return self._credentials.get(account_id)


class EnvTokenProvider:
    """Reads one credential from env vars. Useful for manual runs"""

    def get_credential(self, account_id: AccountId) -> Credential | None:
        if ACCESS_TOKEN_ENV_VAR not in os.environ:
            return None
        scopes = os.environ.get(TOKEN_SCOPES_ENV_VAR, "")
        try:
            return Credential(
                account_id=account_id,
                access_token=Token(os.environ.get(ACCESS_TOKEN_ENV_VAR)),
                expires_at=os.environ.get(  # type:ignore[arg-type]
                    TOKEN_EXPIRES_AT_ENV_VAR,
                    (datetime.now(timezone.utc) + timedelta(minutes=20)).isoformat(),
                ),
                scopes=[Scope(s) for s in scopes.replace(",", " ").split() if s],
                refresh_token=os.environ.get(REFRESH_TOKEN_ENV_VAR) or None,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Credential env vars are invalid: {e}") from e


class Auth:
    """The purpose of this class is to store a valid bearer credential for
    the account that reads the venue's order book"""

    def __init__(
        self,
        provider: TokenProvider,
        account_id: AccountId,
        required_scope: Scope = Scope(STRUCTURE_MARKETS_SCOPE),
    ):
        self._provider = provider
        self._account_id = account_id
        self._required_scope = required_scope
        # Filled after asking the provider
        self._credential: Credential | None = None

    @property
    def account_id(self) -> AccountId:
        return self._account_id

    @property
    def credential(self) -> Credential | None:
        return self._credential

    def refresh(self) -> Credential:
        """Asks the provider for a credential and checks it can be used to read
        structure markets. Raises ConfigurationError otherwise"""
        credential = self._provider.get_credential(self._account_id)
        if credential is None:
            raise ConfigurationError(
                f"No credential found for account {self._account_id}"
            )
        if self._required_scope not in credential.scopes:
            raise ConfigurationError(
                f"Credential for account {self._account_id} is missing scope "
                + f"{self._required_scope}. Relink the account with that scope"
            )
        if not credential.refresh_token:
            raise ConfigurationError(
                f"Credential for account {self._account_id} has no refresh token"
            )
        if not credential.is_fresh():
            raise ConfigurationError(
                f"Credential for account {self._account_id} expired at "
                + f"{credential.expires_at.isoformat()} and was not refreshed"
            )
        logger.debug("Loaded credential for account %s", self._account_id)
        self._credential = credential
        return credential

    def remove_credentials(self):
        self._credential = None
