import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.security import decode_access_token
from db.database import get_db
from db.models.profiles import Profile

logger = logging.getLogger(__name__)

# tokens come from the external auth provider; this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Profile:
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = str(payload["sub"])
    profile = db.query(Profile).filter(Profile.id == user_id).first()

    # first request of a newly signed-up user
    if not profile:
        profile = Profile(id=user_id, email=payload.get("email"))
        db.add(profile)
        try:
            db.commit()
        except IntegrityError:
            # a concurrent first request created it
            db.rollback()
            profile = db.query(Profile).filter(Profile.id == user_id).first()
            if not profile:
                raise
        else:
            db.refresh(profile)
            logger.info("Created profile for user %s", user_id)

    return profile
