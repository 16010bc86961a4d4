# subdesk/core/users.py
"""
FastAPI Users configuration and authentication setup.
JWT bearer tokens signed with SECRET_KEY, Argon2 password hashing.
"""
import logging
import uuid
from typing import Optional

from fastapi import Depends, Request
from fastapi_users import BaseUserManager, FastAPIUsers, UUIDIDMixin
from fastapi_users.authentication import (
    AuthenticationBackend,
    BearerTransport,
    JWTStrategy,
)
from fastapi_users.db import SQLAlchemyUserDatabase
from fastapi_users.password import PasswordHelper
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from ..db.engine import get_session
from ..models.user import User
from .config import get_settings

logger = logging.getLogger(__name__)

# --- Configuration ---
SECRET = get_settings().secret_key
if not SECRET:
    raise RuntimeError("FATAL: SECRET_KEY not configured in .env")

ACCESS_TOKEN_LIFETIME_SECONDS = 86400  # 24 hours

# --- Authentication Transport ---
bearer_transport = BearerTransport(tokenUrl="auth/login")


def get_jwt_strategy() -> JWTStrategy:
    """Returns JWT strategy for token generation and validation"""
    return JWTStrategy(secret=SECRET, lifetime_seconds=ACCESS_TOKEN_LIFETIME_SECONDS)


auth_backend_jwt = AuthenticationBackend(
    name="jwt",
    transport=bearer_transport,
    get_strategy=get_jwt_strategy,
)


def _send_reset_token(email: str, token: str) -> None:
    from ..services.mail_transport import MailMessage, SmtpTransport

    message = MailMessage(
        sender=None,
        to=email,
        subject="Password Reset Code",
        text=f"Your password reset code is: {token}",
        html=f"<p>Your password reset code is: <strong>{token}</strong></p>",
    )
    SmtpTransport.from_settings().send(message)


# --- User Manager ---
class UserManager(UUIDIDMixin, BaseUserManager[User, uuid.UUID]):
    reset_password_token_secret = SECRET
    verification_token_secret = SECRET

    async def on_after_login(
        self, user: User, request: Optional[Request] = None, response=None
    ):
        logger.info(f"User logged in: {user.email}")

    async def on_after_forgot_password(
        self, user: User, token: str, request: Optional[Request] = None
    ):
        """Mail the reset token. Delivery failures are logged, never surfaced."""
        logger.info(f"Password reset requested for: {user.email}")
        try:
            await run_in_threadpool(_send_reset_token, user.email, token)
        except Exception as e:
            logger.error(f"Could not send password reset mail to {user.email}: {e}")

    async def on_after_reset_password(self, user: User, request: Optional[Request] = None):
        logger.info(f"Password reset completed for: {user.email}")


# --- Dependency Injectors ---
async def get_user_db(session: AsyncSession = Depends(get_session)):
    yield SQLAlchemyUserDatabase(session, User)


# Configure passlib to use Argon2 for password hashing
argon2_context = CryptContext(schemes=["argon2"], deprecated="auto")
password_helper = PasswordHelper(argon2_context)


async def get_user_manager(user_db=Depends(get_user_db)):
    yield UserManager(user_db, password_helper)


# --- FastAPI Users Instance ---
fastapi_users = FastAPIUsers[User, uuid.UUID](
    get_user_manager,
    [auth_backend_jwt],
)

current_active_user = fastapi_users.current_user(active=True)
