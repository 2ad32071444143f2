"""
Skill data models, mirrored from the volunteer skill registry.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel


class UserSkill(BaseModel):
    """A skill declared by a user; it counts once validated."""

    user_id: int
    skill_id: int
    validation_date: Optional[date] = None

    @property
    def is_validated(self) -> bool:
        return self.validation_date is not None
