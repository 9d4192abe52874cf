from schemas.application import StatusUpdate
from schemas.comment import CommentCreate

__all__ = [
    "StatusUpdate",
    "CommentCreate",
]
