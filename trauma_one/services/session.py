import logging
from datetime import datetime, timezone

from trauma_one.models.auth import AuthSession
from trauma_one.services.auth import AuthProvider, token_expiry

logger = logging.getLogger(__name__)


class SessionManager:
    """Process-wide session context.

    Sessions are validated against the auth provider once and then served from
    memory until their token expires, they are signed out, or the store reports
    the token as expired. A token with no readable expiry is never cached and
    is checked with the provider on every request.
    """

    def __init__(self, auth: AuthProvider) -> None:
        self._auth = auth
        self._sessions: dict[str, AuthSession] = {}

    def _remember(self, session: AuthSession) -> None:
        now = datetime.now(timezone.utc)
        self._sessions = {
            token: cached for token, cached in self._sessions.items() if cached.expires_at > now
        }
        if session.expires_at is not None and session.expires_at > now:
            self._sessions[session.access_token] = session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        session = await self._auth.sign_in(email, password)
        if session.expires_at is None:
            session.expires_at = token_expiry(session.access_token)
        self._remember(session)
        logger.info("Session started for %s", session.user.email or session.user.id)
        return session

    async def current(self, access_token: str) -> AuthSession:
        """Return the live session for a token; raises AuthError / SessionExpiredError."""
        cached = self._sessions.get(access_token)
        if cached is not None:
            if cached.expires_at > datetime.now(timezone.utc):
                return cached
            self._sessions.pop(access_token, None)

        user = await self._auth.get_user(access_token)
        session = AuthSession(
            access_token=access_token,
            expires_at=token_expiry(access_token),
            user=user,
        )
        self._remember(session)
        return session

    def expire(self, access_token: str) -> None:
        """Forget a token the backend rejected as expired."""
        if self._sessions.pop(access_token, None) is not None:
            logger.info("Session expired; signed out locally")

    async def sign_out(self, access_token: str) -> None:
        session = self._sessions.pop(access_token, None)
        await self._auth.sign_out(access_token)
        if session is not None:
            logger.info("Session ended for %s", session.user.email or session.user.id)

    async def close(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
