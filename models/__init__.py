from models.application import Application
from models.comment import Comment

__all__ = [
    "Application",
    "Comment",
]
