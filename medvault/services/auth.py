"""Bearer credential verification.

Tokens are HS256 JWTs carrying ``sub`` (user id) and ``role``. They are
minted by the identity service; ``issue_token`` exists for local tooling
and tests.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from medvault.config import JWT_ALGORITHM, JWT_EXPIRES_MINUTES, JWT_SECRET
from medvault.errors import AuthenticationError, ForbiddenError
from medvault.models.common import utcnow
from medvault.models.user import UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class AuthService:
    def __init__(self, secret: str, algorithm: str = "HS256", expires_minutes: int = 60) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.expires_minutes = expires_minutes

    def issue_token(self, user_id: str, role: UserRole | str, expires_minutes: int | None = None) -> str:
        minutes = expires_minutes if expires_minutes is not None else self.expires_minutes
        payload = {
            "sub": user_id,
            "role": UserRole(role).value,
            "exp": utcnow() + timedelta(minutes=minutes),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Caller:
        try:
            data = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired") from None
        except jwt.PyJWTError:
            raise AuthenticationError("Invalid or expired token") from None

        user_id = data.get("sub")
        try:
            role = UserRole(data.get("role"))
        except ValueError:
            raise AuthenticationError("Token carries an unknown role") from None
        if not user_id:
            raise AuthenticationError("Token is missing a subject")
        return Caller(user_id=str(user_id), role=role)

    @staticmethod
    def has_role(caller: Caller, *roles: UserRole) -> bool:
        return caller.role in roles


_auth: AuthService | None = None


def init_auth() -> AuthService:
    global _auth
    if _auth is None:
        _auth = AuthService(JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRES_MINUTES)
    return _auth


def get_auth_service() -> AuthService:
    return init_auth()


def close_auth() -> None:
    global _auth
    _auth = None


security = HTTPBearer(auto_error=False)


def get_current_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    auth: AuthService = Depends(get_auth_service),
) -> Caller:
    if credentials is None:
        raise AuthenticationError()
    return auth.verify(credentials.credentials)


def authorize(*roles: UserRole):
    """Dependency factory: authenticated caller whose role is one of ``roles``."""

    def dependency(caller: Caller = Depends(get_current_caller)) -> Caller:
        if not AuthService.has_role(caller, *roles):
            logger.info("Role %s rejected for user %s", caller.role.value, caller.user_id)
            raise ForbiddenError(f"User role '{caller.role.value}' is not authorized to access this route")
        return caller

    return dependency
