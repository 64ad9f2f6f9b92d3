import asyncio
from getpass import getpass
from sqlalchemy.future import select
from lms_quiz.database import AsyncSessionLocal
from lms_quiz.models import Organization, Permission, User, UserRole
from lms_quiz.auth.password_security import hash_password


async def create_admin_interactive():
    """
    Interactively create an admin user, creating the organization for the
    given domain first when it does not exist yet.
    """
    domain = input("Enter organization domain (e.g. school.example.com): ").strip().lower()
    email = input("Enter admin email: ").strip()
    name = input("Enter admin name: ").strip() or "Administrator"
    password = getpass("Enter admin password: ").strip()
    password_confirm = getpass("Confirm password: ").strip()

    if password != password_confirm:
        print("Passwords do not match. Exiting.")
        return

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Organization).where(Organization.domain == domain))
        org = result.scalars().first()
        if not org:
            org_name = input("Organization not found. Enter a name to create it: ").strip() or domain
            org = Organization(name=org_name, domain=domain)
            session.add(org)
            await session.flush()

        existing_admin = await session.execute(
            select(User).where(User.email == email, User.org_id == org.id)
        )
        if existing_admin.scalars().first():
            print(f"User with email {email} already exists in {domain}.")
            return

        admin_user = User(
            org_id=org.id,
            role=UserRole.ADMIN,
            email=email,
            name=name,
            password_hash=hash_password(password),
            permissions=[p.value for p in Permission],
        )
        session.add(admin_user)
        await session.commit()
        print(f"Admin created successfully: {email} ({domain})")


if __name__ == "__main__":
    asyncio.run(create_admin_interactive())
