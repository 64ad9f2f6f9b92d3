import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Float, Enum, ForeignKey, Table, Text, JSON, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from lms_quiz.database import Base


# ---------------------------
# Role Enum
# ---------------------------
class UserRole(str, enum.Enum):
    ADMIN = "admin"
    STUDENT = "student"
    INSTRUCTOR = "instructor"


class Permission(str, enum.Enum):
    MANAGE_ANY_COURSE = "manage_any_course"
    MANAGE_COURSE = "manage_course"
    ENROLL_IN_COURSE = "enroll_in_course"


class PublicationStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_ANSWER = "short_answer"


class QuizAttemptStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    GRADED = "graded"


# ---------------------------
# Organization (tenant)
# ---------------------------
class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    domain = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# ---------------------------
# User Model
# ---------------------------
class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)

    role = Column(Enum(UserRole, name="user_role_enum"), nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    permissions = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    organization = relationship("Organization")

    __table_args__ = (
        UniqueConstraint("org_id", "email", name="unique_user_email_per_org"),
    )


# ---------------------------
# Course Model
# ---------------------------
class Course(Base):
    __tablename__ = "courses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", backref="courses_owned")

    students = relationship(
        "User",
        secondary="course_students",
        backref="enrolled_courses"
    )

    quizzes = relationship("Quiz", back_populates="course", cascade="all, delete-orphan")


# ---------------------------
# Association Table
# ---------------------------
course_students = Table(
    "course_students",
    Base.metadata,
    Column("course_id", Uuid, ForeignKey("courses.id"), primary_key=True),
    Column("student_id", Uuid, ForeignKey("users.id"), primary_key=True),
    Column("enrolled_at", DateTime, default=datetime.utcnow),
)


# ---------------------------
# Quiz Model
# ---------------------------
class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id"), nullable=False)
    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    time_limit = Column(Integer, nullable=True)  # minutes
    max_attempts = Column(Integer, default=0)  # <= 0 means unlimited
    passing_score = Column(Integer, default=60)
    total_points = Column(Integer, default=0)
    publication_status = Column(
        Enum(PublicationStatus, name="publication_status_enum"),
        default=PublicationStatus.DRAFT,
        nullable=False,
    )

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    course = relationship("Course", back_populates="quizzes")
    owner = relationship("User")
    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
    )
    attempts = relationship("QuizAttempt", back_populates="quiz", passive_deletes=True)


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    type = Column(Enum(QuestionType, name="question_type_enum"), nullable=False)
    text = Column(Text, nullable=False)
    points = Column(Integer, default=1)
    explanation = Column(Text, nullable=True)

    # [{"uid": str, "text": str, "is_correct": bool, "order": int}]
    options = Column(JSON, default=list)
    correct_answers = Column(JSON, default=list)
    settings = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)

    quiz = relationship("Quiz", back_populates="questions")


# ---------------------------
# Quiz Attempt Model
# ---------------------------
class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)

    status = Column(
        Enum(QuizAttemptStatus, name="quiz_attempt_status_enum"),
        default=QuizAttemptStatus.IN_PROGRESS,
        nullable=False,
    )
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    # Embedded answer records, always replaced as a whole list:
    # [{"question_id", "answer", "is_correct", "score", "feedback",
    #   "time_spent", "graded_at", "graded_by_id"}]
    answers = Column(JSON, default=list, nullable=False)

    score = Column(Float, nullable=True)
    percentage_score = Column(Float, nullable=True)
    passed = Column(Boolean, nullable=True)
    # whole seconds from start to submission
    time_spent = Column(Integer, nullable=True)

    graded_at = Column(DateTime, nullable=True)
    graded_by_id = Column(Uuid, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quiz = relationship("Quiz", back_populates="attempts")
    user = relationship("User", foreign_keys=[user_id])
    graded_by = relationship("User", foreign_keys=[graded_by_id])
