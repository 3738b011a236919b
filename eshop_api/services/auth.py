"""
Customer login, registration and client API token checks
"""
import random
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from loguru import logger
from sqlalchemy import text
from sqlalchemy.orm import Session

from eshop_api.config import settings
from eshop_api.exceptions import AuthError, ServiceError
from eshop_api.models import User
from eshop_api.utils.php import php_date, stringify


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def check_password(password: str, stored: str) -> bool:
    """bcrypt check; PHP ``$2y$`` hashes are read as ``$2b$``, anything else is compared as plain text"""
    if not stored:
        return False
    if stored.startswith(("$2y$", "$2a$", "$2b$")):
        fixed = "$2b$" + stored[4:]
        try:
            return bcrypt.checkpw(password.encode("utf-8"), fixed.encode("utf-8"))
        except ValueError:
            return False
    return password == stored


def generate_referral_code(name: str) -> str:
    return f"{name[:3].upper()}{random.randint(0, 9999):04d}"


def create_user_token(user_id, mobile) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "mobile": mobile,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def create_client_token(secret: str, expires_in: int = 86400) -> str:
    """Token a client app signs with its ``client_api_keys`` secret"""
    now = int(time.time())
    return jwt.encode({"iss": settings.jwt_issuer, "iat": now, "exp": now + expires_in}, secret, algorithm="HS256")


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return None


def validate_token(db: Session, authorization: Optional[str]):
    """Accept a bearer token signed by any active client secret; raises ``AuthError``"""
    token = bearer_token(authorization)
    if not token:
        raise AuthError("Unauthorized access not allowed")
    secrets = db.execute(text("SELECT secret FROM client_api_keys WHERE status = 1")).fetchall()
    if not secrets:
        raise AuthError("No Client(s) Data Found!")

    message = "Invalid token"
    for row in secrets:
        try:
            payload = jwt.decode(token, row.secret, algorithms=["HS256"], leeway=settings.jwt_leeway)
        except jwt.InvalidTokenError as exc:
            message = str(exc)
            continue
        if payload.get("iss") == settings.jwt_issuer:
            return payload
        raise AuthError("Invalid Hash")
    raise AuthError(message)


def _user_data(user: User, token: str) -> dict:
    return {
        "id": str(user.id),
        "username": user.username or "",
        "email": user.email or "",
        "mobile": user.mobile or "",
        "balance": stringify(user.balance or 0),
        "active": stringify(user.active or 0),
        "created_on": php_date(user.created_at),
        "last_login": php_date(user.last_login),
        "fcm_id": user.fcm_id or "",
        "country_code": user.country_code or "91",
        "token": token,
    }


def login(db: Session, mobile, password, fcm_id: str = "") -> dict:
    if not mobile or not password:
        raise ServiceError("Mobile and password are required")
    user = db.query(User).filter(User.mobile == str(mobile)).order_by(User.id.desc()).first()
    if user is None:
        raise ServiceError("User does not exist!")
    if not check_password(str(password), user.password or ""):
        logger.warning(f"Failed login for mobile {mobile}")
        raise ServiceError("Invalid login credentials")
    if str(user.active) != "1":
        raise ServiceError("Account is inactive. Please contact administrator.")

    if fcm_id:
        user.fcm_id = fcm_id
    user.last_login = datetime.now()
    db.commit()
    logger.info(f"User {user.id} logged in")
    return _user_data(user, create_user_token(user.id, user.mobile))


def register(db: Session, data: dict) -> dict:
    missing = [field for field in ("name", "email", "mobile", "password") if not data.get(field)]
    if missing:
        raise ServiceError(f"{', '.join(missing)} are required")
    if db.query(User.id).filter(User.email == data["email"]).first():
        raise ServiceError("The email is already registered. Please login")
    if db.query(User.id).filter(User.mobile == str(data["mobile"])).first():
        raise ServiceError("The mobile number is already registered. Please login")

    user = User(
        username=data["name"],
        email=data["email"],
        mobile=str(data["mobile"]),
        password=hash_password(str(data["password"])),
        country_code=data.get("country_code") or "91",
        fcm_id=data.get("fcm_id") or "",
        dob=data.get("dob") or "",
        city=data.get("city") or "",
        area=data.get("area") or "",
        street=data.get("street") or "",
        pincode=data.get("pincode") or "",
        referral_code=generate_referral_code(data["name"]),
        friends_code=data.get("friends_code") or "",
        balance=0,
        active=1,
        created_at=datetime.now(),
    )
    try:
        db.add(user)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info(f"Registered user {user.id}")
    return _user_data(user, create_user_token(user.id, user.mobile))
