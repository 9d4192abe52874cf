from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.errors import ValidationError
from config import settings
from database import get_db
from models import Comment
from schemas.comment import CommentCreate
from services import applications as store
from utils.formatting import iso_or_none

router = APIRouter(prefix="/api/comments", tags=["comments"])


def _comment_to_response(c: Comment) -> dict[str, Any]:
    return {
        "id": c.id,
        "comment": c.comment,
        "created_at": iso_or_none(c.created_at),
    }


@router.get("")
async def list_comments(db: AsyncSession = Depends(get_db)):
    comments = await store.list_comments(db, settings.comments_limit)
    return JSONResponse(
        [_comment_to_response(c) for c in comments],
        headers={"Cache-Control": "no-store"},
    )


@router.post("", status_code=201)
async def create_comment(body: CommentCreate, db: AsyncSession = Depends(get_db)):
    if not body.comment.strip():
        raise ValidationError("Invalid comment")
    comment = await store.add_comment(db, body.comment)
    return _comment_to_response(comment)
