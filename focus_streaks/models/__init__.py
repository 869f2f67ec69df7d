from .focus_session import FocusSessionRecord
from .user_streak import UserStreakRecord

__all__ = [
    "FocusSessionRecord",
    "UserStreakRecord",
]
