"""Authentication, token revocation and rate limiting.

Note: FastAPI dependencies (``require_user``, ``require_admin``) live in
``api.deps`` and are NOT re-exported here to avoid a circular import
(api.deps → auth → api.deps).
"""

from helpdesk.auth.blacklist import TokenBlacklist
from helpdesk.auth.context import UserContext
from helpdesk.auth.reset_tokens import generate_reset_token, hash_reset_token
from helpdesk.auth.tokens import TokenClaims, TokenPair, TokenService, TokenType

__all__ = [
    "TokenBlacklist",
    "TokenClaims",
    "TokenPair",
    "TokenService",
    "TokenType",
    "UserContext",
    "generate_reset_token",
    "hash_reset_token",
]
