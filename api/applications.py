from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.errors import NotFoundError, UnsupportedMediaError, ValidationError
from database import get_db
from models import Application
from schemas.application import StatusUpdate
from services import applications as store
from services.documents import DOCX_MEDIA_TYPE, build_application_docx, build_term_sheet_docx
from services.encoder import encode_submission
from services.form_state import apply_form_state
from utils.formatting import full_name, iso_or_none

router = APIRouter(prefix="/api/applications", tags=["applications"])

MSG_APPLICATION_NOT_FOUND = "Not found"
MAX_STATUS_LENGTH = 32

FORMAT_DOCX = "docx"
FORMAT_TERM_SHEET = "term-sheet"


def _app_to_response(app: Application) -> dict[str, Any]:
    """Serialize an application with its display names."""
    return {
        "id": app.id,
        "status": app.status,
        "applicant": app.applicant or {},
        "co_applicant": app.co_applicant,
        "reference": app.reference,
        "declarations": app.declarations,
        "consent": app.consent,
        "assets": app.assets,
        "liabilities": app.liabilities,
        "totals": app.totals,
        "financing_details": app.financing_details,
        "applicant_name": full_name(app.applicant, "app"),
        "coapplicant_name": full_name(app.co_applicant, "co"),
        "created_at": iso_or_none(app.created_at),
        "updated_at": iso_or_none(app.updated_at),
    }


async def _read_submission(request: Request) -> Mapping[str, Any] | Iterable[tuple[str, Any]]:
    """Parse a JSON object or form body; anything else is a 415."""
    content_type = (request.headers.get("content-type") or "").lower()

    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError as e:
            raise ValidationError("Invalid JSON body", str(e)) from e
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return body

    if "multipart/form-data" in content_type or "application/x-www-form-urlencoded" in content_type:
        form = await request.form()
        return list(form.multi_items())

    raise UnsupportedMediaError("Unsupported Content-Type", content_type or None)


def _export_kind(requested: Optional[str], accept: Optional[str]) -> Optional[str]:
    requested = (requested or "").strip().lower()
    if requested in (FORMAT_DOCX, FORMAT_TERM_SHEET):
        return requested
    if DOCX_MEDIA_TYPE in (accept or "").lower():
        return FORMAT_DOCX
    return None


def _docx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=DOCX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-store",
        },
    )


@router.post("", status_code=201)
async def create_application(request: Request, db: AsyncSession = Depends(get_db)):
    fields = await _read_submission(request)
    encoded = encode_submission(fields)
    app = await store.create_application(db, encoded)
    return {
        "ok": True,
        "id": app.id,
        "created_at": iso_or_none(app.created_at),
    }


@router.post("/preview")
async def preview_application(request: Request):
    """Apply the form's derived values without storing anything."""
    fields = await _read_submission(request)
    items = fields.items() if isinstance(fields, Mapping) else fields
    # Uploaded files are echoed back by name only.
    values, derived = apply_form_state({k: getattr(v, "filename", v) for k, v in items})
    return {"values": values, "derived": derived}


@router.get("/{application_id}")
async def get_application(
    application_id: str,
    request: Request,
    export_format: Optional[str] = Query(None, alias="format"),
    db: AsyncSession = Depends(get_db),
):
    app = await store.get_application(db, application_id)
    if app is None:
        raise NotFoundError(MSG_APPLICATION_NOT_FOUND)

    kind = _export_kind(export_format, request.headers.get("accept"))
    if kind == FORMAT_DOCX:
        return _docx_response(build_application_docx(app), f"application-{app.id}.docx")
    if kind == FORMAT_TERM_SHEET:
        return _docx_response(build_term_sheet_docx(app), f"term-sheet-{app.id}.docx")
    return _app_to_response(app)


@router.patch("/{application_id}")
async def update_application_status(
    application_id: str,
    body: StatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    status = (body.status or "").strip()
    if not status:
        raise ValidationError("Missing status")
    if len(status) > MAX_STATUS_LENGTH:
        raise ValidationError("Invalid status", f"status must be at most {MAX_STATUS_LENGTH} characters")

    app = await store.update_status(db, application_id, status)
    if app is None:
        raise NotFoundError(MSG_APPLICATION_NOT_FOUND)
    return {
        "id": app.id,
        "status": app.status,
        "updated_at": iso_or_none(app.updated_at),
    }
