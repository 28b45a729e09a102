import os
from datetime import datetime, timedelta, timezone
from typing import List

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlmodel import Session, select

from ..database import get_session
from ..logger import get_logger
from ..models import User

load_dotenv()

router = APIRouter(tags=["auth"])
logger = get_logger("auth")

# Configuration
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


# Schemas
class Token(BaseModel):
    access_token: str
    token_type: str
    user: dict


class UserCreate(BaseModel):
    username: str
    password: str
    role: str = "staff"


class UserRead(BaseModel):
    id: int
    username: str
    role: str
    token_version: int


# Utils
def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id, username=user.username, role=user.role, token_version=user.token_version
    )


# Dependencies
async def get_current_user(token: str = Depends(oauth2_scheme), session: Session = Depends(get_session)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        token_version: int = payload.get("v")
        if username is None or token_version is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = session.exec(select(User).where(User.username == username)).first()
    if user is None:
        raise credentials_exception

    # Password changes bump the version and revoke older tokens
    if user.token_version != token_version:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired, please log in again",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_current_admin(current_user: User = Depends(get_current_user)):
    if current_user.role != "admin":
        raise HTTPException(status_code=403, detail="Not authorized")
    return current_user


# Routes
@router.post("/auth/login", response_model=Token)
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), session: Session = Depends(get_session)):
    logger.info(f"Login attempt for user: {form_data.username}")
    user = session.exec(select(User).where(User.username == form_data.username)).first()
    if not user or not verify_password(form_data.password, user.password_hash):
        logger.warning(f"Login failed for user: {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"Login successful for user: {form_data.username}")
    access_token = create_access_token(data={"sub": user.username, "v": user.token_version})
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": _user_read(user).model_dump(),
    }


@router.post("/auth/setup")
async def setup_initial_admin(user_data: UserCreate, session: Session = Depends(get_session)):
    logger.info("Setup initial admin requested")
    # Only allowed while the users table is empty
    if session.exec(select(User)).first() is not None:
        logger.warning("Setup attempted but users already exist")
        raise HTTPException(status_code=400, detail="Setup already complete")

    user = User(
        username=user_data.username,
        password_hash=get_password_hash(user_data.password),
        role="admin",
        token_version=1,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"Admin created via setup: {user.username}")
    return {"message": "Admin created"}


@router.get("/auth/me", response_model=UserRead)
async def read_current_user(current_user: User = Depends(get_current_user)):
    return _user_read(current_user)


# Admin user management
@router.get("/users/", response_model=List[UserRead], dependencies=[Depends(get_current_admin)])
async def list_users(session: Session = Depends(get_session)):
    return [_user_read(u) for u in session.exec(select(User).order_by(User.id)).all()]


@router.post("/users/", response_model=UserRead, dependencies=[Depends(get_current_admin)])
async def create_user(user_in: UserCreate, session: Session = Depends(get_session)):
    existing = session.exec(select(User).where(User.username == user_in.username)).first()
    if existing:
        raise HTTPException(status_code=400, detail="Username already exists")

    user = User(
        username=user_in.username,
        password_hash=get_password_hash(user_in.password),
        role=user_in.role,
        token_version=1,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"User created: {user.username}")
    return _user_read(user)
