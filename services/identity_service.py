# services/identity_service.py
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from http.cookies import SimpleCookie, CookieError
from typing import Optional, Mapping

from jose import jwt, JWTError, ExpiredSignatureError

from config.jwt_config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, AUTH_COOKIE_NAME, TOKEN_QUERY_PARAM
from models.user import UserRole
from utils.errors import Unauthenticated


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str
    email: Optional[str] = None
    full_name: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADVISOR.value, UserRole.ADMIN.value)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class IdentityResolver:
    """
    Verifies signed, time-limited credentials for both HTTP requests and live connections.

    resolve() either returns an Identity or raises Unauthenticated; it never raises
    anything else, so callers can choose between rejecting and treating the caller as anonymous.
    """

    def __init__(self, secret_key: str = SECRET_KEY, algorithm: str = ALGORITHM):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def resolve(self, credential: Optional[str]) -> Identity:
        token = self._strip_scheme(credential)
        if not token:
            raise Unauthenticated("Missing credential", reason="missing")

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise Unauthenticated("Credential expired", reason="expired")
        except JWTError:
            raise Unauthenticated("Invalid credential", reason="invalid")
        except Exception:
            raise Unauthenticated("Malformed credential", reason="malformed")

        raw_user_id = payload.get("user_id", payload.get("sub"))
        role = payload.get("role")
        try:
            user_id = int(raw_user_id)
        except (TypeError, ValueError):
            raise Unauthenticated("Credential carries no user id", reason="malformed")

        if role not in {r.value for r in UserRole}:
            raise Unauthenticated("Credential carries no valid role", reason="malformed")

        return Identity(
            user_id=user_id,
            role=role,
            email=payload.get("email"),
            full_name=payload.get("full_name"),
        )

    def resolve_handshake(
        self,
        headers: Mapping[str, str],
        query_params: Mapping[str, str],
        cookies: Optional[Mapping[str, str]] = None
    ) -> Identity:
        """Header first, then the handshake query field, then the auth cookie."""
        return self.resolve(credential_from_sources(headers, query_params, cookies))

    @staticmethod
    def _strip_scheme(credential: Optional[str]) -> Optional[str]:
        if credential is None:
            return None
        credential = credential.strip()
        if credential.lower().startswith("bearer "):
            credential = credential[7:].strip()
        return credential or None


def token_from_cookie_header(cookie_header: Optional[str], cookie_name: str = AUTH_COOKIE_NAME) -> Optional[str]:
    if not cookie_header:
        return None
    cookie = SimpleCookie()
    try:
        cookie.load(cookie_header)
    except CookieError:
        return None
    morsel = cookie.get(cookie_name)
    return morsel.value if morsel else None


def credential_from_sources(
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
    cookies: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    authorization = headers.get("authorization")
    if authorization:
        return authorization

    token = query_params.get(TOKEN_QUERY_PARAM)
    if token:
        return token

    if cookies is not None and cookies.get(AUTH_COOKIE_NAME):
        return cookies.get(AUTH_COOKIE_NAME)
    return token_from_cookie_header(headers.get("cookie"))


def create_access_token(
    user_id: int,
    role: str,
    expires_delta: Optional[timedelta] = None,
    secret_key: str = SECRET_KEY,
    algorithm: str = ALGORITHM,
    **claims
) -> str:
    """Issue a credential in the format resolve() accepts (issuance proper lives in the auth service)."""
    to_encode = dict(claims)
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({
        "sub": str(user_id),
        "user_id": user_id,
        "role": role,
        "exp": expire,
    })
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


identity_resolver = IdentityResolver()
