# subdesk/api/auth/main.py
"""
Authentication routes.

Login/logout and the forgot/reset password flow come from FastAPI Users;
``/auth/verify`` lets the frontend check that a stored token is still valid.
"""
from fastapi import APIRouter, Depends

from ...core.users import auth_backend_jwt, current_active_user, fastapi_users
from ...models.user import User
from ...schemas.user import UserRead

router = APIRouter(prefix="/auth")

# POST /auth/login, POST /auth/logout
router.include_router(fastapi_users.get_auth_router(auth_backend_jwt))
# POST /auth/forgot-password, POST /auth/reset-password
router.include_router(fastapi_users.get_reset_password_router())


@router.get("/verify")
def api_verify_token(current_user: User = Depends(current_active_user)):
    return {"valid": True, "user": UserRead.model_validate(current_user)}
