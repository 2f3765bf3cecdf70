import logging
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from pydantic import ValidationError

from .schemas.user import Token, TokenData, LoginRequest, UserResponse, LoginResponse
from ..models.db_models import User
from ..models.patch_models import UserPatch
from ..db.memory_store import MemoryStore
from ..config.config import settings
from .dependencies import get_store
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

# --- Router and security setup ---
router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


# --- Helpers ---
def create_access_token(data: dict, expires_delta: timedelta):
    """Creates a signed JWT carrying `data` that expires after `expires_delta`."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def verify_role(user: User, *roles: str):
    """Raises 403 unless the user holds one of `roles`."""
    if user.role not in roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"This operation is only valid for: {', '.join(roles)}."
        )


# --- Dependency for protected routes ---
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    store: MemoryStore = Depends(get_store)
) -> User:
    """
    Decodes the bearer token and loads the current User from the store.
    Deleted or deactivated accounts are refused even with a valid token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception

    if token_data.sub is None:
        logger.warning(f"Token is valid but missing 'sub': {payload}")
        raise credentials_exception

    user = await store.get_user(token_data.sub)
    if user is None or not user.is_active:
        logger.warning(f"User '{token_data.sub}' has a valid token but no active account. Denying access.")
        raise credentials_exception
    return user


# --- Login ---

async def _perform_login(email: str, password: str, role: Optional[str], store: MemoryStore) -> LoginResponse:
    """Shared login logic for the JSON and the OAuth2 form endpoints."""
    logger.info(f"Login attempt for '{email}'.")
    user = await store.get_user_by_email(email)

    # Passwords are compared as stored; there is no hashing in this service.
    if user is None or user.password != password or (role is not None and user.role != role):
        logger.warning(f"Login failed for '{email}' (invalid credentials or role).")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email, password or role.")
    if not user.is_active:
        logger.warning(f"Login refused for deactivated account '{email}'.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This account has been deactivated.")

    user = await store.update_user(user.id, UserPatch(last_login=datetime.now(timezone.utc)))
    access_token = create_access_token(
        data={"sub": user.id, "role": user.role},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    logger.info(f"User '{email}' ({user.role}) logged in successfully.")
    return LoginResponse(token=Token(access_token=access_token), user=UserResponse.model_validate(user))


# --- API endpoints ---

@router.post("/token", response_model=Token)
@limiter.limit("20/minute")
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    store: MemoryStore = Depends(get_store)
):
    """Standard OAuth2 endpoint for Swagger UI. The username is the email address."""
    login_response = await _perform_login(form_data.username, form_data.password, None, store)
    return login_response.token


@router.post("/login", response_model=LoginResponse)
@limiter.limit("20/minute")
async def login(
    request: Request,
    login_request: LoginRequest,
    store: MemoryStore = Depends(get_store)
):
    """Login endpoint for the web client."""
    return await _perform_login(login_request.email, login_request.password, login_request.role, store)


@router.get("/me", response_model=UserResponse)
@limiter.limit("60/minute")
async def read_current_user(request: Request, current_user: User = Depends(get_current_user)):
    return current_user
