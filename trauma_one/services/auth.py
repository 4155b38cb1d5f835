"""Authentication providers.

The hosted provider delegates sign-in, token validation and sign-out to the
backend's auth REST API. The local provider checks a single configured
front-desk account and issues HS256 JWTs signed with the local key; sign-out
revokes a token by its id until it would have expired.
"""

import hmac
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx
from jose import ExpiredSignatureError, JWTError, jwt

from trauma_one.errors import AuthError, SessionExpiredError, StoreError, is_session_expired
from trauma_one.models.auth import AuthSession, AuthUser

logger = logging.getLogger(__name__)

LOCAL_USER_ID = "local-frontdesk"


class AuthProvider:
    async def sign_in(self, email: str, password: str) -> AuthSession:  # pragma: no cover - interface
        raise NotImplementedError

    async def get_user(self, access_token: str) -> AuthUser:  # pragma: no cover - interface
        raise NotImplementedError

    async def sign_out(self, access_token: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


def token_expiry(access_token: str) -> datetime | None:
    """The ``exp`` claim of a JWT, read without verifying the signature."""
    try:
        claims = jwt.get_unverified_claims(access_token)
    except JWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


def _error_message(resp: httpx.Response) -> tuple[str | None, str]:
    try:
        body = resp.json()
    except ValueError:
        return None, resp.text or resp.reason_phrase
    if not isinstance(body, dict):
        return None, resp.text
    code = body.get("error_code") or body.get("code") or body.get("error")
    message = (
        body.get("error_description")
        or body.get("msg")
        or body.get("message")
        or resp.reason_phrase
    )
    return (str(code) if code is not None else None), message


@dataclass
class SupabaseAuth(AuthProvider):
    client: httpx.AsyncClient
    base_url: str
    api_key: str

    def _url(self, path: str) -> str:
        return f"{self.base_url}/auth/v1/{path}"

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self.api_key}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            resp = await self.client.post(
                self._url("token"),
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            logger.error("Auth sign-in request failed: %s", e)
            raise StoreError(f"Could not reach the auth service: {e}") from e
        if resp.status_code in (400, 401, 422):
            _, message = _error_message(resp)
            raise AuthError(message)
        if resp.status_code >= 400:
            code, message = _error_message(resp)
            raise StoreError(message, code=code, status_code=resp.status_code)

        data = resp.json()
        user = data.get("user") or {}
        expires_at = None
        if data.get("expires_at"):
            expires_at = datetime.fromtimestamp(int(data["expires_at"]), tz=timezone.utc)
        elif data.get("expires_in"):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(data["expires_in"]))
        return AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type", "bearer"),
            expires_at=expires_at,
            user=AuthUser(id=str(user.get("id", "")), email=user.get("email")),
        )

    async def get_user(self, access_token: str) -> AuthUser:
        try:
            resp = await self.client.get(self._url("user"), headers=self._headers(access_token))
        except httpx.HTTPError as e:
            logger.error("Auth session lookup failed: %s", e)
            raise StoreError(f"Could not reach the auth service: {e}") from e
        if resp.status_code in (401, 403):
            code, message = _error_message(resp)
            if is_session_expired(code, message) or "expired" in message.lower():
                raise SessionExpiredError(message, code=code, status_code=resp.status_code)
            raise AuthError(message)
        if resp.status_code >= 400:
            code, message = _error_message(resp)
            raise StoreError(message, code=code, status_code=resp.status_code)
        data = resp.json()
        return AuthUser(id=str(data.get("id", "")), email=data.get("email"))

    async def sign_out(self, access_token: str) -> None:
        try:
            resp = await self.client.post(self._url("logout"), headers=self._headers(access_token))
        except httpx.HTTPError as e:
            logger.warning("Auth sign-out request failed: %s", e)
            return
        if resp.status_code >= 400 and resp.status_code not in (401, 403, 404):
            _, message = _error_message(resp)
            logger.warning("Auth sign-out returned %s: %s", resp.status_code, message)


@dataclass
class LocalAuth(AuthProvider):
    """Single configured front-desk account issuing signed, expiring JWTs."""
    email: str
    password: str
    signing_key: str
    ttl_seconds: int = 3600
    algorithm: str = "HS256"
    _revoked: dict[str, int] = field(default_factory=dict, repr=False)

    def _encode(self, subject: str) -> tuple[str, datetime]:
        now = int(time.time())
        payload = {
            "sub": subject,
            "email": self.email,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + self.ttl_seconds,
        }
        token = jwt.encode(payload, self.signing_key, algorithm=self.algorithm)
        return token, datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

    def _decode(self, access_token: str) -> dict:
        try:
            return jwt.decode(access_token, self.signing_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise SessionExpiredError("JWT expired", status_code=401) from None
        except JWTError:
            raise AuthError("Invalid session") from None

    async def sign_in(self, email: str, password: str) -> AuthSession:
        email_ok = hmac.compare_digest(email.strip().lower(), self.email.lower())
        password_ok = hmac.compare_digest(password, self.password)
        if not (email_ok and password_ok):
            raise AuthError("Invalid login credentials")
        token, expires_at = self._encode(LOCAL_USER_ID)
        logger.info("Local sign-in for %s", self.email)
        return AuthSession(
            access_token=token,
            expires_at=expires_at,
            user=AuthUser(id=LOCAL_USER_ID, email=self.email),
        )

    async def get_user(self, access_token: str) -> AuthUser:
        claims = self._decode(access_token)
        if claims.get("jti") in self._revoked:
            raise AuthError("Invalid session")
        return AuthUser(id=claims["sub"], email=claims.get("email"))

    async def sign_out(self, access_token: str) -> None:
        try:
            claims = self._decode(access_token)
        except (AuthError, SessionExpiredError):
            return
        now = int(time.time())
        # revoked ids only need remembering until their token would expire anyway
        self._revoked = {jti: exp for jti, exp in self._revoked.items() if exp > now}
        self._revoked[claims["jti"]] = claims["exp"]
