# devicehub/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from bson import ObjectId
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from devicehub.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from devicehub.core.policy import Action, authorize
from devicehub.models.user import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# --- Passwords ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# --- Tokens ---
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_user_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(
        {"sub": str(user.id), "email": user.email, "role": user.role.value},
        expires_delta=expires_delta,
    )


def decode_token(token: str) -> dict:
    """Decoded claims. Raises JWTError on a bad signature, expiry, or missing subject."""
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    if not payload.get("sub"):
        raise JWTError("Subject ('sub') missing in token payload.")
    return payload


# --- Current user ---
async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
) -> User:
    """
    Loads the user named by the token. AuthMiddleware normally has already
    decoded it into request.state.user_id; otherwise decode here.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id: Optional[str] = getattr(request.state, "user_id", None)
    if not user_id:
        if not token:
            raise credentials_exception
        try:
            user_id = decode_token(token)["sub"]
        except JWTError:
            logger.warning("Token decode failed in get_current_user dependency.")
            raise credentials_exception

    if not ObjectId.is_valid(user_id):
        raise credentials_exception
    user = await User.get(ObjectId(user_id))
    if user is None:
        logger.warning(f"Token subject {user_id} not found in database.")
        raise credentials_exception
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        logger.warning(f"Access denied for locked account '{current_user.email}'.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is locked. Please contact an administrator.",
        )
    return current_user


def require_action(action: Action):
    """
    Factory for a dependency that lets the request through only when the
    current user may perform `action` (ownership-free actions only).
    """
    async def action_checker(current_user: User = Depends(get_current_active_user)) -> User:
        authorize(current_user, action)
        return current_user
    return action_checker


require_admin = require_action(Action.MANAGE_USERS)
