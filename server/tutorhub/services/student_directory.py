"""
tutorhub/services/student_directory.py
Student lookups needed by the payment ledger
"""
import logging
from dataclasses import dataclass
from typing import Optional

from tutorhub.core.exceptions import InvalidInputError, StudentNotFoundError
from tutorhub.db.supabase import SupabaseQueries

logger = logging.getLogger(__name__)


@dataclass
class BillableStudent:
    student_id: str
    name: str
    parent_id: str
    class_level: Optional[str] = None
    parent_email: Optional[str] = None


class StudentDirectory:
    def __init__(self, db: SupabaseQueries):
        self.db = db

    async def get(self, student_id: str) -> Optional[dict]:
        return await self.db.select_by_id("students", "student_id", student_id)

    async def student_name(self, student_id: str) -> Optional[str]:
        student = await self.get(student_id)
        if not student:
            return None
        return full_name(student)

    async def resolve_billable(self, student_id: str) -> BillableStudent:
        """
        Resolve a student to whoever pays for them.

        Raises:
            StudentNotFoundError: no such student
            InvalidInputError: the student has no parent/guardian assigned
        """
        student = await self.get(student_id)
        if not student:
            raise StudentNotFoundError(student_id)

        parent_id = student.get("parent_id")
        if not parent_id:
            logger.warning(f"Student {student_id} has no parent assigned")
            raise InvalidInputError("Student has no parent", student_id=student_id)

        return BillableStudent(
            student_id=str(student["student_id"]),
            name=full_name(student),
            parent_id=str(parent_id),
            class_level=student.get("class_level"),
            parent_email=student.get("parent_email"),
        )


def full_name(student: dict) -> str:
    parts = [student.get("first_name"), student.get("last_name")]
    return " ".join(p for p in parts if p) or student.get("name", "")
