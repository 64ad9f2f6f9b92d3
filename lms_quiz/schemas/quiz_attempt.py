from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime

from lms_quiz.models import QuizAttemptStatus


class QuizAttemptResult(BaseModel):
    success: bool
    attempt_id: str
    status: str
    score: Optional[float] = None
    percentage_score: Optional[float] = None
    passed: Optional[bool] = None
    message: str


class AnswerSubmit(BaseModel):
    question_id: Optional[str] = None
    answer: Any = None


class QuizSubmitRequest(BaseModel):
    # Optional final batch merged into the attempt before scoring
    answers: Optional[List[AnswerSubmit]] = None


class NavigateRequest(BaseModel):
    attempt_id: UUID
    current_question_id: Optional[str] = None
    current_answer: Any = None
    target_question_index: int
    save_answer: bool = False


class OptionView(BaseModel):
    uid: str
    text: str
    order: Optional[int] = None
    is_correct: Optional[bool] = None


class TargetQuestionInfo(BaseModel):
    id: str
    text: str
    type: str
    points: int
    options: List[OptionView] = []


class NavigateResponse(BaseModel):
    success: bool
    message: str
    target_question_answer: Any = None
    target_question_info: Optional[TargetQuestionInfo] = None
    answered_questions: List[str] = []


class AttemptAnswerRead(BaseModel):
    question_id: str
    answer: Any = None
    is_correct: Optional[bool] = None
    score: Optional[float] = None
    feedback: Optional[str] = None
    time_spent: Optional[int] = 0
    graded_at: Optional[str] = None
    graded_by_id: Optional[str] = None


class QuizSummary(BaseModel):
    id: UUID
    title: str
    total_points: Optional[int] = None

    model_config = {"from_attributes": True}


class QuizAttemptRead(BaseModel):
    id: UUID
    quiz_id: UUID
    user_id: UUID
    status: QuizAttemptStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    score: Optional[float] = None
    percentage_score: Optional[float] = None
    passed: Optional[bool] = None
    time_spent: Optional[int] = None
    graded_at: Optional[datetime] = None
    graded_by_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    answers: List[AttemptAnswerRead] = []
    quiz: Optional[QuizSummary] = None

    model_config = {"from_attributes": True}


class QuizAttemptListResponse(BaseModel):
    items: List[QuizAttemptRead]
    total: int
    skip: int
    limit: int


class AttemptQuestionView(BaseModel):
    id: str
    text: str
    type: str
    points: int
    options: Optional[List[OptionView]] = None
    correct_answers: List[str] = []


class AttemptAnswerView(BaseModel):
    question_id: str
    user_answer: Any = None
    is_correct: Optional[bool] = None
    score: float = 0
    feedback: str = ""
    time_spent: int = 0


class QuizAttemptDetails(BaseModel):
    attempt_id: str
    quiz_title: str
    total_points: int
    passing_score: int
    score: float
    percentage_score: float
    passed: bool
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    questions: List[AttemptQuestionView]
    answers: List[AttemptAnswerView]


class FeedbackRequest(BaseModel):
    question_id: str
    feedback: str


class FeedbackResponse(BaseModel):
    success: bool
    message: str


class AttemptStatistics(BaseModel):
    total_attempts: int
    completed_attempts: int
    best_score: float
    average_score: float
    last_attempt: Optional[QuizAttemptRead] = None


class QuizQuestionsView(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    questions: List[Dict[str, Any]]
