import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from . import config, models
from .database import SessionLocal
from .tenant_context import TenantIdentity

logger = logging.getLogger(__name__)

# OAuth2PasswordBearer tokenUrl should match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl='auth/login')


def get_db():
    """Unscoped session for authentication lookups on ``users``."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def authenticate_user(db: Session, email: str, password: str):
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not verify_password(password, user.password_hash) or not user.is_active:
        return None
    return user


def create_access_token(user: models.User, expires_delta: timedelta | None = None) -> str:
    to_encode = {
        'sub': str(user.id),
        'email': user.email,
        'role': user.role,
        'account_id': user.account_id,
    }
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode['exp'] = expire
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def create_refresh_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    to_encode = {
        'sub': str(user_id),
        'type': 'refresh',
    }
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS))
    to_encode['exp'] = expire
    return jwt.encode(to_encode, config.REFRESH_SECRET_KEY, algorithm=config.ALGORITHM)


def verify_refresh_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, config.REFRESH_SECRET_KEY, algorithms=[config.ALGORITHM])
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid token')

    if payload.get('type') != 'refresh':
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid token type')
    return payload


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Token expired')
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid token')

    if payload.get('type') == 'refresh':
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid token type')
    return payload


def get_current_identity(token: str = Depends(oauth2_scheme)) -> TenantIdentity:
    """Tenant identity carried by the bearer token.

    A valid token without usable ids yields an anonymous identity; the
    database then scopes every query to nothing.
    """
    identity = TenantIdentity.from_claims(decode_access_token(token))
    if identity.is_anonymous:
        logger.info('Authenticated token carries no tenant identity')
    return identity
