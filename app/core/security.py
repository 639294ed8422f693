from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.user import User


def get_current_user(
    x_user_email: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """
    DEV AUTH: pass X-User-Email header to simulate logged-in user.
    Example: X-User-Email: faculty@local.test
    The user's role comes from the users table; credential checks live in the
    identity provider in front of this service.
    """
    if not x_user_email or not x_user_email.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Email header (dev auth)",
        )

    email = x_user_email.strip().lower()
    user = db.query(User).filter(func.lower(User.email) == email).one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid or inactive user")
    return user
