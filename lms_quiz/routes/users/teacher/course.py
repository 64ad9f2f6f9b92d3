from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from uuid import UUID

from lms_quiz.database import get_db
from lms_quiz.models import Course, User, course_students
from lms_quiz.auth.course_access import is_enrolled
from lms_quiz.auth.dependencies import ActionContext, is_teacher
from lms_quiz.exceptions import AuthorizationException, ConflictException, NotFoundException
from lms_quiz.schemas.course import CourseCreate, CourseItem, EnrollStudentRequest, EnrollStudentResponse


router = APIRouter(
    prefix="/teacher/course",
    tags=["Teacher Course Endpoints"]
    )


@router.post("/create-course", response_model=CourseItem, status_code=201)
async def create_course(
    course_in: CourseCreate,
    ctx: ActionContext = Depends(is_teacher),
    db: AsyncSession = Depends(get_db),
):
    existing = await db.execute(
        select(Course).where(Course.code == course_in.code, Course.org_id == ctx.org_id)
    )
    if existing.scalars().first():
        raise ConflictException("Course code already exists")

    new_course = Course(
        org_id=ctx.org_id,
        code=course_in.code,
        name=course_in.name,
        description=course_in.description,
        owner_id=ctx.user.id,
    )

    db.add(new_course)
    await db.commit()
    await db.refresh(new_course)

    return CourseItem.model_validate(new_course)


@router.post("/enroll-student/{course_id}", response_model=EnrollStudentResponse, status_code=201)
async def enroll_student(
    course_id: UUID,
    payload: EnrollStudentRequest,
    ctx: ActionContext = Depends(is_teacher),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Course).where(Course.id == course_id, Course.org_id == ctx.org_id)
    )
    course = result.scalar_one_or_none()
    if not course:
        raise NotFoundException("Course", course_id)

    if course.owner_id != ctx.user.id:
        raise AuthorizationException("Only the course owner can enroll students")

    result = await db.execute(
        select(User).where(User.id == payload.student_id, User.org_id == ctx.org_id)
    )
    student = result.scalar_one_or_none()
    if not student:
        raise NotFoundException("Student", payload.student_id)

    if await is_enrolled(course.id, student.id, db):
        raise ConflictException("Student is already enrolled in this course")

    await db.execute(
        course_students.insert().values(course_id=course.id, student_id=student.id)
    )
    await db.commit()

    return EnrollStudentResponse(
        course_id=course.id,
        student_id=student.id,
        message="Student enrolled successfully",
    )
