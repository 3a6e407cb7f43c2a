import os
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError
from dotenv import load_dotenv

load_dotenv()

# access tokens are issued by the auth provider and signed with its JWT secret
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_SECRET_KEY")
AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")
ALGORITHM = "HS256"


def create_access_token(user_id: str, email: Optional[str] = None, minutes=60):
    """
    Issue a token shaped like the auth provider's, for local development and tests.

    Production tokens are issued by the auth provider, never by this service.
    """
    to_encode = {"sub": user_id, "aud": AUDIENCE, "role": "authenticated"}
    if email:
        to_encode["email"] = email
    expire = datetime.utcnow() + timedelta(minutes=minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], audience=AUDIENCE)
    except JWTError:
        return None
