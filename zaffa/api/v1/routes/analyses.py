from __future__ import annotations

from typing import Any, Iterable, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from zaffa.api.v1.deps.auth import get_current_user, require_household_access
from zaffa.db.session import get_session
from zaffa.models.entities import Analysis, Household, User
from zaffa.schemas.base import AnalysisSchema, CategorySchema, ItemSchema, StatsSchema, strip_text
from zaffa.services import activity
from zaffa.services.analysis import analysis_items, compute_stats, featured_analyses, items_by_section
from zaffa.services.category_tree import CategoryCycleError
from zaffa.services.households import load_categories, load_items

router = APIRouter()


class AnalysisCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=128)
    category_ids: list[UUID] = Field(..., min_length=1)
    is_featured: bool = False

    @field_validator("title", mode="before")
    def strip_title(cls, value: Any) -> Any:
        return strip_text(value)


class AnalysisUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=128)
    category_ids: Optional[list[UUID]] = Field(None, min_length=1)
    is_featured: Optional[bool] = None

    @field_validator("title", mode="before")
    def strip_title(cls, value: Any) -> Any:
        return strip_text(value)


class StatsRequest(BaseModel):
    category_ids: list[UUID] = Field(..., min_length=1)


class SectionItems(BaseModel):
    section: CategorySchema
    items: list[ItemSchema]


class StatsOut(BaseModel):
    stats: StatsSchema
    sections: list[SectionItems]


class FeaturedOut(BaseModel):
    analysis: AnalysisSchema
    total_count: int
    purchased_count: int
    items: list[ItemSchema]


def _get_household_analysis(session: Session, household_id: UUID, analysis_id: UUID) -> Analysis:
    analysis = session.execute(
        select(Analysis).where(Analysis.id == analysis_id, Analysis.household_id == household_id)
    ).scalar_one_or_none()
    if not analysis:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not found")
    return analysis


def _check_categories(session: Session, household_id: UUID, category_ids: Iterable[UUID]) -> list[str]:
    known = {category.id for category in load_categories(session, household_id)}
    missing = [str(category_id) for category_id in category_ids if category_id not in known]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown categories: {', '.join(missing)}",
        )
    return [str(category_id) for category_id in category_ids]


def _stats_for(session: Session, household_id: UUID, category_ids: Iterable[UUID]) -> StatsOut:
    categories = load_categories(session, household_id)
    try:
        selected = analysis_items(categories, load_items(session, household_id), category_ids)
        grouped = items_by_section(categories, selected)
    except CategoryCycleError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return StatsOut(
        stats=StatsSchema.model_validate(compute_stats(selected)),
        sections=[
            SectionItems(
                section=CategorySchema.model_validate(section),
                items=[ItemSchema.model_validate(item) for item in section_items],
            )
            for section, section_items in grouped
        ],
    )


def _stored_ids(analysis: Analysis) -> list[str]:
    return list(analysis.category_ids or [])


@router.post(
    "/households/{household_id}/analyses",
    response_model=AnalysisSchema,
    status_code=status.HTTP_201_CREATED,
)
def create_analysis(
    household_id: UUID,
    payload: AnalysisCreate,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Analysis:
    analysis = Analysis(
        household_id=household_id,
        title=payload.title,
        category_ids=_check_categories(session, household_id, payload.category_ids),
        is_featured=payload.is_featured,
    )
    session.add(analysis)
    session.flush()
    activity.log_activity(
        session,
        household_id,
        user,
        activity.CREATE_ANALYSIS,
        f'Created analysis "{analysis.title}"',
        payload={"analysis_id": str(analysis.id)},
    )
    session.commit()
    session.refresh(analysis)
    return analysis


@router.get("/households/{household_id}/analyses", response_model=list[AnalysisSchema])
def list_analyses(
    household_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
) -> list[Analysis]:
    return list(
        session.execute(
            select(Analysis).where(Analysis.household_id == household_id).order_by(Analysis.created_at)
        ).scalars().all()
    )


@router.get("/households/{household_id}/analyses/featured", response_model=list[FeaturedOut])
def list_featured(
    household_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
) -> list[FeaturedOut]:
    analyses = session.execute(
        select(Analysis)
        .where(Analysis.household_id == household_id, Analysis.is_featured.is_(True))
        .order_by(Analysis.created_at)
    ).scalars().all()
    try:
        featured = featured_analyses(
            analyses,
            load_categories(session, household_id),
            load_items(session, household_id),
        )
    except CategoryCycleError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return [
        FeaturedOut(
            analysis=AnalysisSchema.model_validate(entry.analysis),
            total_count=entry.total_count,
            purchased_count=entry.purchased_count,
            items=[ItemSchema.model_validate(item) for item in entry.items],
        )
        for entry in featured
    ]


@router.post("/households/{household_id}/stats", response_model=StatsOut)
def selection_stats(
    household_id: UUID,
    payload: StatsRequest,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
) -> StatsOut:
    _check_categories(session, household_id, payload.category_ids)
    return _stats_for(session, household_id, payload.category_ids)


@router.get("/households/{household_id}/analyses/{analysis_id}", response_model=AnalysisSchema)
def get_analysis(
    household_id: UUID,
    analysis_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
) -> Analysis:
    return _get_household_analysis(session, household_id, analysis_id)


@router.get("/households/{household_id}/analyses/{analysis_id}/stats", response_model=StatsOut)
def analysis_stats(
    household_id: UUID,
    analysis_id: UUID,
    household: Household = Depends(require_household_access),
    session: Session = Depends(get_session),
) -> StatsOut:
    analysis = _get_household_analysis(session, household_id, analysis_id)
    return _stats_for(session, household_id, _stored_ids(analysis))


@router.patch("/households/{household_id}/analyses/{analysis_id}", response_model=AnalysisSchema)
def update_analysis(
    household_id: UUID,
    analysis_id: UUID,
    payload: AnalysisUpdate,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Analysis:
    analysis = _get_household_analysis(session, household_id, analysis_id)
    if payload.title is not None:
        analysis.title = payload.title
    if payload.category_ids is not None:
        analysis.category_ids = _check_categories(session, household_id, payload.category_ids)
    if payload.is_featured is not None:
        analysis.is_featured = payload.is_featured
    session.add(analysis)
    activity.log_activity(
        session,
        household_id,
        user,
        activity.UPDATE_ANALYSIS,
        f'Updated analysis "{analysis.title}"',
        payload={"analysis_id": str(analysis.id)},
    )
    session.commit()
    session.refresh(analysis)
    return analysis


@router.delete("/households/{household_id}/analyses/{analysis_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_analysis(
    household_id: UUID,
    analysis_id: UUID,
    household: Household = Depends(require_household_access),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> Response:
    analysis = _get_household_analysis(session, household_id, analysis_id)
    title = analysis.title
    session.delete(analysis)
    activity.log_activity(session, household_id, user, activity.DELETE_ANALYSIS, f'Deleted analysis "{title}"')
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
