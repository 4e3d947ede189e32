"""
SQL repositories for the case store.

- **case_repo.py**: ``moderation_cases`` CRUD, filtered listing, search and
  the aggregate queries behind case statistics.
- **case_update_repo.py**: Append-only ``case_updates`` audit trail.
"""

from casebook.repositories.case_repo import CaseRepository
from casebook.repositories.case_update_repo import CaseUpdateRepository

__all__ = ["CaseRepository", "CaseUpdateRepository"]
