from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, Optional, List
from datetime import datetime
from uuid import UUID

from lms_quiz.models import PublicationStatus, QuestionType


class QuizOptionCreate(BaseModel):
    uid: str
    text: str
    is_correct: bool = False
    order: Optional[int] = None


class QuizQuestionCreate(BaseModel):
    type: QuestionType
    text: str
    points: int = 1
    explanation: Optional[str] = None
    options: List[QuizOptionCreate] = []
    correct_answers: List[str] = []
    settings: Dict[str, Any] = {}


class QuizCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, ge=0)
    max_attempts: int = 0
    passing_score: int = Field(default=60, ge=0, le=100)
    publication_status: PublicationStatus = PublicationStatus.DRAFT
    questions: List[QuizQuestionCreate] = []


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, ge=0)
    max_attempts: Optional[int] = None
    passing_score: Optional[int] = Field(default=None, ge=0, le=100)
    publication_status: Optional[PublicationStatus] = None

    @field_validator("title", "max_attempts", "passing_score", "publication_status")
    @classmethod
    def not_null(cls, value, info):
        # omit a field to keep it; only description and time_limit may be cleared
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class QuizCreateResponse(BaseModel):
    id: UUID
    title: str
    total_points: int
    question_count: int
    publication_status: PublicationStatus

    model_config = {"from_attributes": True}


class QuizQuestionRead(BaseModel):
    id: UUID
    position: int
    type: QuestionType
    text: str
    points: int
    explanation: Optional[str] = None
    options: List[Dict[str, Any]] = []
    correct_answers: List[str] = []
    settings: Dict[str, Any] = {}

    model_config = {"from_attributes": True}


class QuizManagementView(BaseModel):
    id: UUID
    course_id: UUID
    owner_id: UUID
    title: str
    description: Optional[str] = None
    time_limit: Optional[int] = None
    max_attempts: int
    passing_score: int
    total_points: int
    publication_status: PublicationStatus
    created_at: Optional[datetime] = None
    questions: List[QuizQuestionRead]

    model_config = {"from_attributes": True}
