from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime


class CourseCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class CourseItem(BaseModel):
    id: UUID
    code: str
    name: str
    description: Optional[str] = None
    owner_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class EnrollStudentRequest(BaseModel):
    student_id: UUID


class EnrollStudentResponse(BaseModel):
    course_id: UUID
    student_id: UUID
    message: str
