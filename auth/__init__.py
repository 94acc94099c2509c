"""Authentication modules: magic links, sessions, token hashing."""

from auth.exceptions import (
    AuthError,
    ConfigurationError,
    InvalidTokenError,
    RateLimitedError,
    SessionExpiredError,
)
from auth.types import (
    User,
    AuthToken,
    IssuedToken,
    Session,
    MagicLinkDispatch,
    AuthenticatedUser,
)
from auth.config import AuthConfig
from auth.crypto import TokenHasher
from auth.email import normalize_email, is_valid_email
from auth.database import AuthDatabase
from auth.magic_link import MagicLinkService
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.session import SessionManager
from auth.service import AuthService
