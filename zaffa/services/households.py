from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from zaffa.models.entities import MAX_HOUSEHOLD_MEMBERS, Category, ChecklistItem, Household, User


def create_household_for(session: Session, user: User) -> Household:
    """Create a single-member household and attach ``user`` to it. Caller commits."""
    household = Household()
    session.add(household)
    session.flush()
    user.household = household
    session.flush()
    return household


def partner_of(household: Optional[Household], user: User) -> Optional[User]:
    if household is None:
        return None
    for member in household.members:
        if member.id != user.id:
            return member
    return None


def can_invite_partner(household: Optional[Household]) -> bool:
    return household is not None and len(household.members) < MAX_HOUSEHOLD_MEMBERS


def is_full(household: Household) -> bool:
    return len(household.members) >= MAX_HOUSEHOLD_MEMBERS


def load_categories(session: Session, household_id: uuid.UUID) -> List[Category]:
    return list(
        session.execute(select(Category).where(Category.household_id == household_id)).scalars().all()
    )


def load_items(session: Session, household_id: uuid.UUID) -> List[ChecklistItem]:
    return list(
        session.execute(
            select(ChecklistItem)
            .where(ChecklistItem.household_id == household_id)
            .order_by(ChecklistItem.created_at)
        ).scalars().all()
    )
