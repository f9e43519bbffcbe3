# creator_match/services/token_exchange.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

from creator_match.config import InstagramSettings
from creator_match.errors import AuthError, InvalidTransition, ProviderError, ValidationError
from creator_match.infrastructure.code_ledger import AuthorizationCodeLedger
from creator_match.infrastructure.instagram_client import InstagramGraphClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ShortLivedToken:
    access_token: str = field(repr=False)
    user_id: str


@dataclass(frozen=True)
class LongLivedToken:
    access_token: str = field(repr=False)
    expires_in: int  # seconds


def compute_expiry(now_ms: int, expires_in_seconds: int) -> int:
    return now_ms + expires_in_seconds * 1000


class ConnectState(str, Enum):
    CODE_RECEIVED = "code_received"
    SHORT_LIVED_TOKEN_OBTAINED = "short_lived_token_obtained"
    LONG_LIVED_TOKEN_OBTAINED = "long_lived_token_obtained"
    PERSISTED = "persisted"
    # failure states
    CODE_REJECTED = "code_rejected"
    LONG_LIVED_EXCHANGE_FAILED = "long_lived_exchange_failed"
    PROFILE_FETCH_FAILED = "profile_fetch_failed"
    PERSIST_FAILED = "persist_failed"


_TRANSITIONS = {
    ConnectState.CODE_RECEIVED: {ConnectState.SHORT_LIVED_TOKEN_OBTAINED, ConnectState.CODE_REJECTED},
    ConnectState.SHORT_LIVED_TOKEN_OBTAINED: {
        ConnectState.LONG_LIVED_TOKEN_OBTAINED,
        ConnectState.LONG_LIVED_EXCHANGE_FAILED,
    },
    ConnectState.LONG_LIVED_TOKEN_OBTAINED: {
        ConnectState.PERSISTED,
        ConnectState.PROFILE_FETCH_FAILED,
        ConnectState.PERSIST_FAILED,
    },
}


class ConnectFlow:
    """
    Tracks one code-to-persisted-account run. Terminal states have no
    outgoing transitions.
    """

    def __init__(self, user_id: str):
        self.user_id = user_id
        self.state = ConnectState.CODE_RECEIVED
        self.history: List[ConnectState] = [self.state]

    @property
    def finished(self) -> bool:
        return self.state not in _TRANSITIONS

    @property
    def failed(self) -> bool:
        return self.finished and self.state != ConnectState.PERSISTED

    def advance(self, target: ConnectState) -> None:
        allowed = _TRANSITIONS.get(self.state, set())
        if target not in allowed:
            raise InvalidTransition(f"cannot move from {self.state.value} to {target.value}")
        logger.info("connect_flow_transition", user_id=self.user_id, src=self.state.value, dst=target.value)
        self.state = target
        self.history.append(target)


def _first_token_entry(body: Dict[str, Any]) -> Dict[str, Any]:
    # newer Instagram Login responses wrap the token in a data list
    data = body.get("data")
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return data[0]
    return body


class TokenExchangeService:
    def __init__(
        self,
        client: InstagramGraphClient,
        settings: InstagramSettings,
        ledger: AuthorizationCodeLedger,
    ):
        self.client = client
        self.settings = settings
        self.ledger = ledger

    async def exchange_authorization_code(self, code: Optional[str]) -> ShortLivedToken:
        if not code or not code.strip():
            raise ValidationError("Missing authorization code")
        code = code.strip()

        if not await self.ledger.claim(code):
            raise AuthError("Authorization code already used", status=400, error_type="code_reused")

        form = {
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "grant_type": "authorization_code",
            "redirect_uri": self.settings.redirect_uri,
            "code": code,
        }
        try:
            body = await self.client.post_form(self.client.oauth_url("oauth/access_token"), form)
        except ProviderError as exc:
            raise AuthError(
                "Authorization code exchange failed",
                status=exc.status,
                code=exc.code,
                error_type=exc.error_type,
                details=exc.details,
            ) from exc

        entry = _first_token_entry(body)
        access_token = entry.get("access_token")
        user_id = entry.get("user_id")
        if not access_token or user_id is None:
            raise AuthError("No access token returned from provider", status=502)
        logger.info("short_lived_token_obtained", external_id=str(user_id))
        return ShortLivedToken(access_token=access_token, user_id=str(user_id))

    async def exchange_for_long_lived_token(self, short_lived_token: str) -> LongLivedToken:
        params = {
            "grant_type": "ig_exchange_token",
            "client_secret": self.settings.client_secret,
            "access_token": short_lived_token,
        }
        try:
            body = await self.client.get("access_token", params=params)
        except ProviderError as exc:
            raise AuthError(
                "Long-lived token exchange failed",
                status=exc.status,
                code=exc.code,
                error_type=exc.error_type,
                details=exc.details,
            ) from exc

        access_token = body.get("access_token")
        expires_in = body.get("expires_in")
        if not access_token or expires_in is None:
            raise AuthError("Provider returned an incomplete long-lived token", status=502)
        logger.info("long_lived_token_obtained", expires_in=int(expires_in))
        return LongLivedToken(access_token=access_token, expires_in=int(expires_in))
