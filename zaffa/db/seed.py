from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from zaffa.models.entities import ROLE_BRIDE, ROLE_GROOM, Category, ChecklistItem, Household, User
from zaffa.security.passwords import hash_password
from zaffa.services.activity import log_activity

SEED_USERS = (
    ("groom@zaffa.local", "Demo1234!", "Omar", "Haddad", ROLE_GROOM),
    ("bride@zaffa.local", "Demo1234!", "Lina", "Haddad", ROLE_BRIDE),
)

# section -> category -> [(name, min_price, max_price)]
SEED_CHECKLIST = {
    "Kitchen": {
        "Appliances": [("Fridge", 900.0, 1400.0), ("Oven", 500.0, 800.0)],
        "Cookware": [("Pot set", 80.0, 150.0)],
    },
    "Living room": {
        "Furniture": [("Sofa", 700.0, 1200.0), ("Coffee table", 100.0, 250.0)],
    },
}


def _ensure_user(
    session: Session, email: str, password: str, first_name: str, last_name: str, role: str
) -> User:
    user = session.scalar(select(User).filter_by(email=email))
    if not user:
        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        session.add(user)
        session.flush()
    return user


def _ensure_category(session: Session, household: Household, name: str, parent: Optional[Category] = None) -> Category:
    parent_id = parent.id if parent is not None else None
    category = session.scalar(
        select(Category).filter_by(household_id=household.id, name=name, parent_id=parent_id)
    )
    if not category:
        category = Category(household_id=household.id, name=name, parent_id=parent_id)
        session.add(category)
        session.flush()
    return category


def seed_demo_data(session: Session) -> Household:
    """Create a two-member demo household with a small checklist. Safe to run twice."""
    users = [_ensure_user(session, *spec) for spec in SEED_USERS]
    household = users[0].household
    if household is None:
        household = Household(hero_title="Our new home")
        session.add(household)
        session.flush()
    for user in users:
        user.household = household
    session.flush()

    if not session.scalar(select(ChecklistItem.id).filter_by(household_id=household.id).limit(1)):
        for section_name, categories in SEED_CHECKLIST.items():
            section = _ensure_category(session, household, section_name)
            for category_name, items in categories.items():
                category = _ensure_category(session, household, category_name, section)
                for name, min_price, max_price in items:
                    session.add(
                        ChecklistItem(
                            household_id=household.id,
                            category_id=category.id,
                            name=name,
                            min_price=min_price,
                            max_price=max_price,
                        )
                    )
        log_activity(session, household.id, None, "seed", "Demo data seeded")
    session.commit()
    return household
