from fastapi import Depends, HTTPException, status

from auth import get_current_user
from models import User, UserRole


def require_roles(*roles: UserRole):
    allowed = set(roles)

    def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Role does not allow access")
        return user

    return _checker


require_staff = require_roles(UserRole.STAFF)
require_student = require_roles(UserRole.STUDENT)
require_judge = require_roles(UserRole.JUDGE)
