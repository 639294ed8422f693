from fastapi import Depends, HTTPException, status

from app.core.security import get_current_user
from app.core.states import Role
from app.models.user import User


def require_roles(*required: Role | str):
    """
    Coarse role gate for whole endpoints (e.g. the audit log). Per-placement
    ownership is decided in the services via app.core.access.

    Usage:
      Depends(require_roles(Role.ADMIN))
      Depends(require_roles(Role.FACULTY, Role.ADMIN))  # any-of
    """
    required_set = {r.value if isinstance(r, Role) else r for r in required}

    def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in required_set:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Forbidden. Requires one of: {sorted(required_set)}",
            )
        return user

    return _dep
