"""
Admin authentication.

An admin signs in with the identity provider in the browser and posts the
resulting ID token to /api/auth/login. That assertion is checked once against
the provider's published keys; the service then mints its own HS256 session
token (role=admin, 7 days) and hands it back in an HTTP-only cookie. Nothing
is stored server-side: a session is valid exactly when its signature and
expiry check out.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from fastapi import HTTPException, Request, Response
from jose import jwt
from jose.exceptions import JOSEError

from config import Settings
from logger import get_logger

_logger = get_logger(__name__)

COOKIE_NAME = "curavet_admin_token"
ALGORITHM = "HS256"
SESSION_TTL = timedelta(days=7)
COOKIE_MAX_AGE = int(SESSION_TTL.total_seconds())
JWKS_CACHE_SECONDS = 60 * 60


class TokenService:
    def __init__(self, settings: Settings, http_client: Optional[httpx.Client] = None):
        self.settings = settings
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=10)
        self._jwks: Optional[dict] = None
        self._jwks_fetched_at = 0.0

    def close(self) -> None:
        """Close the key-fetch client if this service created it"""
        if self._owns_http:
            self._http.close()

    # ------------------------- External identity ---------------
    def _signing_keys(self) -> dict:
        if self._jwks is None or time.monotonic() - self._jwks_fetched_at > JWKS_CACHE_SECONDS:
            res = self._http.get(self.settings.identity_jwks_url)
            res.raise_for_status()
            self._jwks = res.json()
            self._jwks_fetched_at = time.monotonic()
        return self._jwks

    def verify_external_assertion(self, id_token: str) -> bool:
        """True when the provider-issued token is genuine and meant for this project."""
        project_id = self.settings.firebase_project_id
        if not project_id:
            _logger.error("FIREBASE_PROJECT_ID not set, cannot verify identity tokens")
            return False
        try:
            claims = jwt.decode(
                id_token,
                self._signing_keys(),
                algorithms=["RS256"],
                audience=project_id,
                issuer=f"https://securetoken.google.com/{project_id}",
            )
        except (JOSEError, httpx.HTTPError, ValueError) as e:
            _logger.warning(f"Identity token verification failed: {e}")
            return False
        return bool(claims.get("sub"))

    # ------------------------- Session tokens ------------------
    def issue_session_token(self) -> str:
        now = datetime.now(timezone.utc)
        claims = {"role": "admin", "iat": now, "exp": now + SESSION_TTL}
        return jwt.encode(claims, self.settings.jwt_secret, algorithm=ALGORITHM)

    def verify_session_token(self, token: str) -> bool:
        # expired, malformed and badly signed all look the same to the caller
        try:
            jwt.decode(token, self.settings.jwt_secret, algorithms=[ALGORITHM])
        except JOSEError:
            return False
        return True


# ------------------------- Cookie helpers ----------------------
def get_token_from_request(request: Request) -> Optional[str]:
    return request.cookies.get(COOKIE_NAME) or None


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(COOKIE_NAME, path="/")


# ------------------------- Guard -------------------------------
@dataclass(frozen=True)
class AuthError:
    status: int
    message: str


def require_auth(request: Request, tokens: TokenService) -> Optional[AuthError]:
    """None when the request carries a valid admin session."""
    token = get_token_from_request(request)
    if not token:
        return AuthError(401, "Unauthorized")
    if not tokens.verify_session_token(token):
        return AuthError(401, "Invalid or expired session")
    return None


def admin_required(request: Request) -> None:
    """FastAPI dependency for every admin-mutating route"""
    error = require_auth(request, request.app.state.tokens)
    if error is not None:
        raise HTTPException(status_code=error.status, detail=error.message)
