from .entities import (
    ActivityLog,
    Analysis,
    AuditLog,
    Category,
    ChecklistItem,
    Household,
    Invitation,
    User,
)

__all__ = [
    "ActivityLog",
    "Analysis",
    "AuditLog",
    "Category",
    "ChecklistItem",
    "Household",
    "Invitation",
    "User",
]
