"""
Eligibility Gate - may a volunteer be assigned to a route or category?

Only skills with a validation date count. A failed skill lookup raises
UnavailableError so callers can tell "cannot check right now" from "no".
"""

from typing import Any, Optional

from src.data.repositories import SkillDirectory
from src.logistics.base import BaseService


class EligibilityGate(BaseService):
    """Eligibility Gate over the volunteer skill registry."""

    def __init__(self, skills: SkillDirectory, **kwargs: Any) -> None:
        super().__init__(service_name="eligibility_gate", **kwargs)
        self.skills = skills

    def required_skills(self, required_skill_id: Optional[int] = None, category_id: Optional[int] = None) -> set[int]:
        """Skills demanded by an explicit requirement and/or a ticket category."""
        required: set[int] = set()
        if required_skill_id is not None:
            required.add(required_skill_id)
        if category_id is not None:
            required |= self._call_external("skill_directory", self.skills.get_category_skills, category_id)
        return required

    def missing_skills(
        self, user_id: int, required_skill_id: Optional[int] = None, category_id: Optional[int] = None
    ) -> set[int]:
        """Required skills the user does not hold validated."""
        required = self.required_skills(required_skill_id, category_id)
        if not required:
            return set()
        validated = self._call_external("skill_directory", self.skills.get_validated_skills, user_id)
        return required - set(validated)

    def can_assign(self, user_id: int, required_skill_id: Optional[int] = None, category_id: Optional[int] = None) -> bool:
        """
        Check whether the user satisfies the requirement.

        Args:
            user_id: Volunteer to check
            required_skill_id: Skill the route requires, if any
            category_id: Ticket category whose mapped skills are required, if any

        Returns:
            True when every required skill is validated for the user

        Raises:
            UnavailableError: If the skill registry cannot be reached
        """
        missing = self.missing_skills(user_id, required_skill_id, category_id)
        allowed = not missing
        self.logger.info(
            "eligibility_checked",
            user_id=user_id,
            required_skill_id=required_skill_id,
            category_id=category_id,
            allowed=allowed,
            missing=sorted(missing),
        )
        return allowed
