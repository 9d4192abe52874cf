from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.errors import InternalError
from models import Application, Comment
from services.encoder import EncodedApplication

logger = logging.getLogger("intake.applications")

INITIAL_STATUS = "submitted"


def _new_application_id() -> str:
    return f"app-{uuid.uuid4().hex}"


async def create_application(session: AsyncSession, encoded: EncodedApplication) -> Application:
    """Insert one bucketed application; returns the row with id and created_at populated."""
    now = datetime.now(timezone.utc)
    app = Application(
        id=_new_application_id(),
        status=INITIAL_STATUS,
        created_at=now,
        updated_at=now,
        **encoded.buckets(),
    )
    try:
        session.add(app)
        await session.flush()
    except SQLAlchemyError as e:
        raise InternalError("Insert failed", str(e)) from e
    logger.info(
        "application created id=%s co_applicant=%s financing=%s",
        app.id,
        app.co_applicant is not None,
        app.financing_details is not None,
    )
    return app


async def get_application(session: AsyncSession, application_id: str) -> Optional[Application]:
    try:
        result = await session.execute(select(Application).where(Application.id == application_id))
    except SQLAlchemyError as e:
        raise InternalError("Server error", str(e)) from e
    return result.scalar_one_or_none()


async def update_status(session: AsyncSession, application_id: str, status: str) -> Optional[Application]:
    """Set the status of an existing application; None (and no write) when it does not exist."""
    app = await get_application(session, application_id)
    if app is None:
        return None
    app.status = status
    app.updated_at = datetime.now(timezone.utc)
    try:
        await session.flush()
    except SQLAlchemyError as e:
        raise InternalError("Update failed", str(e)) from e
    logger.info("application status updated id=%s status=%s", app.id, status)
    return app


async def list_comments(session: AsyncSession, limit: int) -> list[Comment]:
    try:
        result = await session.execute(
            select(Comment).order_by(Comment.created_at.desc(), Comment.id.desc()).limit(limit)
        )
    except SQLAlchemyError as e:
        raise InternalError("Server error", str(e)) from e
    return list(result.scalars().all())


async def add_comment(session: AsyncSession, text: str) -> Comment:
    comment = Comment(comment=text, created_at=datetime.now(timezone.utc))
    try:
        session.add(comment)
        await session.flush()
    except SQLAlchemyError as e:
        raise InternalError("Insert failed", str(e)) from e
    return comment
