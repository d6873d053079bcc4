from jobboard.models.user import User, Admin, UserInfo
from jobboard.models.activation_code import ActivationCode
from jobboard.models.category import Category
from jobboard.models.tag import Tag
from jobboard.models.job import Job, JobTag
from jobboard.models.user_action import UserAction
from jobboard.models.report import StatisticSnapshot, Message

__all__ = [
    "User", "Admin", "UserInfo", "ActivationCode", "Category", "Tag",
    "Job", "JobTag", "UserAction", "StatisticSnapshot", "Message",
]
