import logging
from fastapi import HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from typing import Dict, Any, Optional
import bcrypt
from aiosmtplib import send
from bson import ObjectId
from bson.errors import InvalidId
from jose import JWTError, jwt
from db import get_database
from models.users import User
from exceptions import get_user_exception, get_forbidden_exception
from config import settings
from utils.money_utils import to_decimal128

from datetime import datetime, timezone, timedelta

UTC = timezone.utc

logger = logging.getLogger(__name__)

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="auth/login")

secret_key = settings.SECRET_KEY
algorithm = settings.ALGORITHM

smtp_user = settings.SMTP_USER
smtp_pwd = settings.SMTP_USER_PWD
smtp_host = settings.SMTP_HOST
smtp_port = settings.SMTP_PORT


class Token(BaseModel):
    access_token: str
    token_type: str


def hash_password(password: str) -> bytes:
    salt = bcrypt.gensalt()
    hashed_password = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed_password


def verify_password(plain_password: str, hashed_password) -> bool:
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode('utf-8')

    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password)


def create_access_token(payload: Dict[str, Any], expiry: Optional[timedelta] = None):
    data_to_encode = {"data": payload}
    expiry = expiry or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    expiry_delta = datetime.now(UTC) + expiry
    data_to_encode.update({"exp": expiry_delta})
    encoded_data: str =  jwt.encode(data_to_encode, secret_key, algorithm)

    return encoded_data


async def authenticate_user(database, email: str, password: str):
    """
    authenticates user
    args:-
        - email: login email
        - password: plain password
    returns the user document, or False on bad credentials or an inactive account
    """
    user = await database.users.find_one({"email": email.strip().lower()})
    if not user or user.get("account_status") == "inactive":
        return False

    if not verify_password(plain_password=password, hashed_password=user["password"]):
        return False
    return user


async def get_current_user(token: str = Depends(oauth2_bearer), database=Depends(get_database)) -> tuple:
    """
    Resolves the bearer token to (user, role).
    Raises 401 when the token is invalid or the user is unknown or inactive.
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        logger.warning("JWT error - %s", e)
        raise get_user_exception()

    data = payload.get("data")
    if data is None or data.get("sub") is None:
        raise get_user_exception()

    try:
        user = await database.users.find_one({"_id": ObjectId(data["sub"])})
    except InvalidId:
        raise get_user_exception()

    if not user or user.get("account_status") == "inactive":
        raise get_user_exception()

    return user, user.get("role", "user")


async def get_current_admin(user_and_role: tuple = Depends(get_current_user)) -> tuple:
    user, role = user_and_role
    if role != "admin":
        raise get_forbidden_exception("Administrator access required")
    return user, role


async def create_user(database, email: str, password: str, role: str = "user",
                      hourly_rate="0.00", account_status: str = "active") -> dict:
    if role not in ("admin", "user"):
        raise ValueError(f"Invalid role: {role}")

    user = User(
        email=email.strip().lower(),
        password=hash_password(password),
        role=role,
        hourly_rate=to_decimal128(hourly_rate),
        account_status=account_status,
    ).model_dump()
    result = await database.users.insert_one(user)
    user["_id"] = result.inserted_id
    return user


def email_configured() -> bool:
    return bool(smtp_host and smtp_user)


async def send_email_async(message):
    await send(message, hostname=smtp_host, port=smtp_port, username=smtp_user, password=smtp_pwd, use_tls=True)
