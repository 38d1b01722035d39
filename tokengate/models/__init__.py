# tokengate Models
from tokengate.models.user_account import UserAccount

__all__ = [
    "UserAccount",
]
