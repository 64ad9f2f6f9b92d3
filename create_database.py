import asyncio

from lms_quiz.database import create_all

# Registers every table on Base
import lms_quiz.models  # noqa: F401


if __name__ == "__main__":
    print("Creating database tables...")
    asyncio.run(create_all())
    print("All tables created successfully!")
