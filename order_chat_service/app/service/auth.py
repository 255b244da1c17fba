"""
Identity of the caller as established by the auth collaborator.

Tokens are HS256 JWTs issued elsewhere; this module only verifies them and
maps the `{id, role}` claims onto an `Actor` used for sender binding and role
checks.
"""
import logging
from typing import Optional

import jwt
from pydantic import BaseModel

from order_chat_service.app.config import settings
from order_chat_service.app.service.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

KNOWN_ROLES = frozenset({"super_admin", "senior_admin", "web_admin", "app_admin", "user"})

ORDER_MANAGER_ROLES = frozenset({"app_admin", "senior_admin", "super_admin"})


class Actor(BaseModel):
    id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role != "user"

    @property
    def can_manage_orders(self) -> bool:
        return self.role in ORDER_MANAGER_ROLES


class TokenAuthenticator:
    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        self.secret = secret or settings.JWT_SECRET
        self.algorithm = algorithm or settings.JWT_ALGORITHM

    def authenticate(self, credential: Optional[str]) -> Actor:
        if not credential:
            raise AuthenticationError("No token provided")

        token = credential[7:] if credential.startswith("Bearer ") else credential
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected bearer token: {e}")
            raise AuthenticationError("Invalid token")

        actor_id = claims.get("id")
        role = claims.get("role")
        if not actor_id or role not in KNOWN_ROLES:
            raise AuthenticationError("Invalid token payload")
        return Actor(id=str(actor_id), role=role)
