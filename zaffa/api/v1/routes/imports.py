from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from zaffa.api.v1.deps.auth import get_current_user, require_household_access
from zaffa.db.session import get_session
from zaffa.models.entities import Household, User
from zaffa.observability import log_structured
from zaffa.services import activity
from zaffa.services.importer import ColumnMapping, ImportMappingError, import_csv

router = APIRouter()

MAX_CSV_CHARS = 2 * 1024 * 1024


class MappingIn(BaseModel):
    section: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    min_price: Optional[str] = None
    max_price: Optional[str] = None


class ImportPayload(BaseModel):
    csv: str = Field(..., max_length=MAX_CSV_CHARS)
    mapping: MappingIn


class ImportOut(BaseModel):
    imported: int
    skipped: int
    created_categories: int


@router.post("/households/{household_id}/import", response_model=ImportOut)
def import_items(
    household_id: UUID,
    payload: ImportPayload,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> ImportOut:
    mapping = ColumnMapping(**payload.mapping.model_dump())
    try:
        result = import_csv(session, household_id, payload.csv, mapping)
    except ImportMappingError as exc:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    activity.log_activity(
        session,
        household_id,
        user,
        activity.IMPORT_ITEMS,
        f"Imported {result.imported} items",
        payload={
            "imported": result.imported,
            "skipped": result.skipped,
            "created_categories": result.created_categories,
        },
    )
    session.commit()
    log_structured(
        logging.INFO,
        "items_imported",
        household_id=str(household_id),
        imported=result.imported,
        skipped=result.skipped,
        created_categories=result.created_categories,
    )
    return ImportOut(
        imported=result.imported,
        skipped=result.skipped,
        created_categories=result.created_categories,
    )
