"""
Database models package
"""
from .user import User, ActivityLog
from .meal import Meal, MealStatus
from .reward import Reward, RewardStatus
from .notification import Notification, SmsBroadcast

__all__ = [
    'User',
    'ActivityLog',
    'Meal',
    'MealStatus',
    'Reward',
    'RewardStatus',
    'Notification',
    'SmsBroadcast',
]
