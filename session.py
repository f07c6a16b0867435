"""
Auth session state for one surface of the storefront.

The customer and admin surfaces each get their own ``SessionScope``; they
never share storage keys. The token is the only authoritative piece: no
token means not signed in. The cached profile is advisory.

Sign-in, sign-out and ``expire()`` are the only writers of the token.
``expire()`` is what the API client calls on a 401; it clears the scope and
notifies subscribers so the application shell can route to sign-in.
"""
import json
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from pydantic import ValidationError

from config import (
    ADMIN_SIGN_IN_PATH,
    ADMIN_TOKEN_KEY,
    CUSTOMER_PROFILE_KEY,
    CUSTOMER_TOKEN_KEY,
    SIGN_IN_PATH,
)
from schemas import UserProfile, parse_response
from storage import KeyValueStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionScope:
    name: str
    token_key: str
    profile_key: Optional[str]
    sign_in_path: str


CUSTOMER_SCOPE = SessionScope("customer", CUSTOMER_TOKEN_KEY, CUSTOMER_PROFILE_KEY, SIGN_IN_PATH)
ADMIN_SCOPE = SessionScope("admin", ADMIN_TOKEN_KEY, None, ADMIN_SIGN_IN_PATH)


@dataclass(frozen=True)
class SessionExpired:
    scope: SessionScope

    @property
    def sign_in_path(self) -> str:
        return self.scope.sign_in_path


ExpiryListener = Callable[[SessionExpired], None]


class Session:
    def __init__(self, storage: KeyValueStorage, scope: SessionScope = CUSTOMER_SCOPE):
        self.storage = storage
        self.scope = scope
        self._listeners: List[ExpiryListener] = []

    @property
    def token(self) -> Optional[str]:
        return self.storage.get(self.scope.token_key) or None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    @property
    def profile(self) -> Optional[UserProfile]:
        if not self.scope.profile_key:
            return None
        raw = self.storage.get(self.scope.profile_key)
        if not raw:
            return None
        try:
            return UserProfile.model_validate(json.loads(raw))
        except (ValueError, ValidationError):
            logger.debug(f"Discarding malformed cached profile for {self.scope.name}")
            return None

    def sign_in(self, token: str, profile: Optional[UserProfile] = None) -> None:
        self.storage.set(self.scope.token_key, token)
        if profile is not None:
            self.cache_profile(profile)

    def cache_profile(self, profile: UserProfile) -> None:
        if not self.scope.profile_key:
            return
        try:
            self.storage.set(self.scope.profile_key, json.dumps(profile.to_wire()))
        except OSError as exc:
            logger.debug(f"Could not cache profile: {exc}")

    def clear(self) -> None:
        self.storage.remove(self.scope.token_key)
        if self.scope.profile_key:
            self.storage.remove(self.scope.profile_key)

    def subscribe(self, listener: ExpiryListener) -> Callable[[], None]:
        """Register for session-expiry events. Returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def expire(self) -> None:
        self.clear()
        event = SessionExpired(self.scope)
        logger.info(f"{self.scope.name} session expired")
        for listener in list(self._listeners):
            listener(event)


def refresh_profile(api, session: Session) -> UserProfile:
    """Fetch the signed-in user's profile and update the cached copy."""
    profile = parse_response(UserProfile, api.get("/auth/me"))
    session.cache_profile(profile)
    return profile
