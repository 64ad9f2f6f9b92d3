import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import uuid
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lms_quiz.auth.dependencies import ActionContext
from lms_quiz.auth.jwt import create_access_token, token_claims_for
from lms_quiz.database import create_all, get_db
from lms_quiz.main import app
from lms_quiz.models import (
    Course,
    Organization,
    Permission,
    PublicationStatus,
    QuestionType,
    Quiz,
    QuizQuestion,
    User,
    UserRole,
    course_students,
)

DOMAIN = "school.test"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def run(session_factory):
    """Call an action the way one request would: with its own session."""

    async def _run(action, ctx, *args, **kwargs):
        async with session_factory() as db:
            return await action(ctx, db, *args, **kwargs)

    return _run


def make_user(org, role, email, permissions=()):
    return User(
        id=uuid.uuid4(),
        org_id=org.id,
        role=role,
        name=email.split("@")[0].title(),
        email=email,
        password_hash="not-a-real-hash",
        permissions=[p.value for p in permissions],
        is_active=True,
    )


def make_question(org, quiz, position, question_type, text, points, options=(), correct_answers=(), settings=None):
    return QuizQuestion(
        id=uuid.uuid4(),
        org_id=org.id,
        quiz_id=quiz.id,
        position=position,
        type=question_type,
        text=text,
        points=points,
        explanation="Because.",
        options=[dict(opt) for opt in options],
        correct_answers=list(correct_answers),
        settings=settings or {},
    )


CAPITAL_OPTIONS = [
    {"uid": "a", "text": "Lyon", "is_correct": False, "order": 0},
    {"uid": "b", "text": "Paris", "is_correct": True, "order": 1},
    {"uid": "c", "text": "Nice", "is_correct": False, "order": 2},
]


@pytest.fixture
async def world(session_factory):
    """
    One organization with a course, an enrolled student, an outsider, the
    course teacher, a course-wide manager, and a published two-question quiz
    worth 5 + 10 points.
    """
    org = Organization(id=uuid.uuid4(), name="School", domain=DOMAIN)
    other_org = Organization(id=uuid.uuid4(), name="Other", domain="other.test")

    teacher = make_user(org, UserRole.INSTRUCTOR, "teacher@school.test", [Permission.MANAGE_COURSE])
    manager = make_user(org, UserRole.INSTRUCTOR, "manager@school.test", [Permission.MANAGE_ANY_COURSE])
    student = make_user(org, UserRole.STUDENT, "student@school.test", [Permission.ENROLL_IN_COURSE])
    classmate = make_user(org, UserRole.STUDENT, "classmate@school.test", [Permission.ENROLL_IN_COURSE])
    outsider = make_user(org, UserRole.STUDENT, "outsider@school.test", [Permission.ENROLL_IN_COURSE])
    foreigner = make_user(other_org, UserRole.STUDENT, "foreigner@other.test", [Permission.ENROLL_IN_COURSE])

    course = Course(id=uuid.uuid4(), org_id=org.id, code="GEO101", name="Geography", owner_id=teacher.id)

    quiz = Quiz(
        id=uuid.uuid4(),
        org_id=org.id,
        course_id=course.id,
        owner_id=teacher.id,
        title="Capitals",
        description="European capitals",
        max_attempts=0,
        passing_score=60,
        total_points=15,
        publication_status=PublicationStatus.PUBLISHED,
    )
    q1 = make_question(
        org, quiz, 0, QuestionType.MULTIPLE_CHOICE, "Capital of France?", 5,
        options=CAPITAL_OPTIONS, correct_answers=["b"],
    )
    q2 = make_question(
        org, quiz, 1, QuestionType.SHORT_ANSWER, "Capital of Italy?", 10,
        correct_answers=["Rome", "Roma"],
    )

    async with session_factory() as db:
        db.add_all([org, other_org])
        await db.flush()
        db.add_all([teacher, manager, student, classmate, outsider, foreigner])
        await db.flush()
        db.add(course)
        await db.flush()
        db.add(quiz)
        await db.flush()
        db.add_all([q1, q2])
        await db.execute(
            course_students.insert(),
            [
                {"course_id": course.id, "student_id": student.id},
                {"course_id": course.id, "student_id": classmate.id},
            ],
        )
        await db.commit()

    def ctx(user, organization=org):
        return ActionContext(user=user, org=organization)

    return SimpleNamespace(
        org=org,
        other_org=other_org,
        teacher=teacher,
        manager=manager,
        student=student,
        classmate=classmate,
        outsider=outsider,
        foreigner=foreigner,
        course=course,
        quiz=quiz,
        q1=q1,
        q2=q2,
        ctx=ctx,
    )


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url=f"http://{DOMAIN}") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(token_claims_for(user))}"}

    return _headers
