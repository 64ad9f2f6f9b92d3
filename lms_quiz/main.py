import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lms_quiz.routes.users.user_login import router as user_login_router

from lms_quiz.routes.users.teacher.course import router as teacher_course_router
from lms_quiz.routes.users.teacher.quiz import router as teacher_quiz_router
from lms_quiz.routes.users.teacher.quiz_attempt import router as teacher_quiz_attempt_router

from lms_quiz.routes.users.student.quiz_attempt import router as student_quiz_attempt_router


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="LMS Quiz Service"
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred."}
    )


@app.get("/")
def root():
    return {
        "message": "LMS Quiz Service is Running!"
        }


app.include_router(user_login_router)

app.include_router(teacher_course_router)
app.include_router(teacher_quiz_router)
app.include_router(teacher_quiz_attempt_router)

app.include_router(student_quiz_attempt_router)
