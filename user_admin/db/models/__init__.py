# Models package (re-export feature modules for stable imports)
from .users.user import User, UserStatus, UserLifecycle, utcnow

__all__ = [
    "User",
    "UserStatus",
    "UserLifecycle",
    "utcnow",
]
