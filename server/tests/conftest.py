"""
Pytest fixtures for the TutorHub test suite.

Provides:
- Environment for Settings (no real Supabase or SendGrid is contacted)
- An in-memory stand-in for SupabaseQueries, injected via dependency overrides
- Bearer tokens for each role
"""

import copy
import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-tutorhub")
os.environ.setdefault("SUPABASE_URL", "https://tutorhub-test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ["SENDGRID_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from tutorhub.core.config import settings
from tutorhub.core.dependencies import get_db, get_email_service
from tutorhub.main import app
from tutorhub.models.schemas import TokenPayload, UserRole
from tutorhub.services.email_service import EmailService


ADMIN_ID = "user_admin_1"
TEACHER_ID = "user_teacher_1"
PARENT_ID = "user_parent_1"
OTHER_PARENT_ID = "user_parent_2"


class InMemoryQueries:
    """Dict-backed replacement for SupabaseQueries with the same async surface."""

    ID_COLUMNS = {"payments": "payment_id", "students": "student_id"}

    def __init__(self):
        self.tables = {"payments": [], "students": []}
        self.update_calls = 0
        # Called with (table, filters) before each update_where; lets tests
        # simulate a concurrent writer.
        self.before_update = None

    def seed(self, table, rows):
        self.tables.setdefault(table, []).extend(copy.deepcopy(rows))

    @staticmethod
    def _matches(row, filters):
        return all(row.get(k) == v for k, v in (filters or {}).items())

    async def insert_one(self, table, data):
        row = copy.deepcopy(data)
        id_column = self.ID_COLUMNS.get(table)
        if id_column and not row.get(id_column):
            row[id_column] = str(uuid.uuid4())
        self.tables.setdefault(table, []).append(row)
        return copy.deepcopy(row)

    async def select_all(self, table, filters=None, order_by=None, ascending=True, limit=None):
        rows = [r for r in self.tables.get(table, []) if self._matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: str(r.get(order_by) or ""), reverse=not ascending)
        if limit:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    async def select_by_id(self, table, id_column, id_value):
        for row in self.tables.get(table, []):
            if row.get(id_column) == id_value:
                return copy.deepcopy(row)
        return None

    async def select_one(self, table, filters):
        rows = await self.select_all(table, filters, limit=1)
        return rows[0] if rows else None

    async def update_where(self, table, filters, data):
        self.update_calls += 1
        if self.before_update:
            self.before_update(table, filters)
        updated = []
        for row in self.tables.get(table, []):
            if self._matches(row, filters):
                row.update(copy.deepcopy(data))
                updated.append(copy.deepcopy(row))
        return updated

    async def delete_by_id(self, table, id_column, id_value):
        rows = self.tables.get(table, [])
        deleted = [r for r in rows if r.get(id_column) == id_value]
        self.tables[table] = [r for r in rows if r.get(id_column) != id_value]
        return deleted

    def stored(self, payment_id):
        for row in self.tables["payments"]:
            if row["payment_id"] == payment_id:
                return row
        return None


class RecordingEmailService(EmailService):
    def __init__(self):
        super().__init__()
        self.sent = []

    async def send_email(self, to_email, subject, html_content):
        self.sent.append({"to": to_email, "subject": subject, "html": html_content})
        return True


STUDENTS = [
    {
        "student_id": "stu_1",
        "first_name": "Amina",
        "last_name": "Njoya",
        "class_level": "Form 3",
        "parent_id": PARENT_ID,
        "parent_email": "parent.njoya@example.com",
    },
    {
        "student_id": "stu_2",
        "first_name": "Paul",
        "last_name": "Mbarga",
        "class_level": "Lower Sixth",
        "parent_id": OTHER_PARENT_ID,
    },
    {
        "student_id": "stu_orphan",
        "first_name": "Kevin",
        "last_name": "Tabi",
        "class_level": "Form 1",
        "parent_id": None,
    },
]


@pytest.fixture
def db():
    queries = InMemoryQueries()
    queries.seed("students", STUDENTS)
    return queries


@pytest.fixture
def mailer():
    return RecordingEmailService()


@pytest.fixture
def client(db, mailer):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_email_service] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_token(sub, role, expires_in=timedelta(hours=1)):
    exp = datetime.now(timezone.utc) + expires_in
    claims = {"sub": sub, "role": role, "exp": int(exp.timestamp())}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(sub, role):
    return {"Authorization": f"Bearer {make_token(sub, role)}"}


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN_ID, "admin")


@pytest.fixture
def teacher_headers():
    return auth_headers(TEACHER_ID, "teacher")


@pytest.fixture
def parent_headers():
    return auth_headers(PARENT_ID, "parent")


@pytest.fixture
def admin_user():
    return TokenPayload(
        sub=ADMIN_ID,
        role=UserRole.ADMIN,
        exp=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.fixture
def headers_for():
    return auth_headers
