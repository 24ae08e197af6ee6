from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from errors import AuthError, ConflictError
from logging_config import get_logger
from models import User as DBUser
from schemas import UserCreate

logger = get_logger("auth")

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def token_for(user: DBUser) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email})


def register_user(db: Session, user: UserCreate) -> DBUser:
    email = user.email.lower()
    if db.query(DBUser).filter(DBUser.email == email).first():
        raise ConflictError("Email already registered", field="email")

    db_user = DBUser(
        name=user.name,
        email=email,
        hashed_password=get_password_hash(user.password),
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration for the same email
        db.rollback()
        raise ConflictError("Email already registered", field="email")
    db.refresh(db_user)
    logger.info(f"User registered: id={db_user.id}")
    return db_user


def authenticate_user(db: Session, email: str, password: str) -> DBUser:
    user = db.query(DBUser).filter(DBUser.email == email.lower()).first()
    if not user or not verify_password(password, user.hashed_password):
        logger.warning("Login failed: invalid credentials")
        raise AuthError("Invalid email or password")
    return user


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> DBUser:
    if not token:
        raise AuthError("No token, authorization denied")
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise AuthError("Token is not valid")
        user_id = int(subject)
    except (JWTError, ValueError):
        raise AuthError("Token is not valid")

    user = db.get(DBUser, user_id)
    if user is None:
        raise AuthError("Token is not valid")
    return user
