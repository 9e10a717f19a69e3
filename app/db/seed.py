# app/db/seed.py
# Usage: python -m app.db.seed
import asyncio

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enum import Role
from app.core.logging import setup_logger
from app.core.security import SecurityService
from app.db.models.database import Base, Course, Lesson, User
from app.db.session import AsyncSessionLocal, engine

ADMIN_EMAIL = "admin@cilliarp.com"
ADMIN_PASSWORD = "admin123"
STUDENT_PASSWORD = "123456"

STUDENTS = [
    ("student1@example.com", "John", "Silva", "Interested in web development"),
    ("student2@example.com", "Maria", "Santos", "Design and development student"),
    ("student3@example.com", "Peter", "Oliveira", "Programming student"),
]

LESSONS = [
    ("Introduction to HTML", "The basic concepts of HTML.", 15),
    ("Styling with CSS", "Style your pages with CSS.", 20),
    ("Interactivity with JavaScript", "Add interactivity to your pages with JavaScript.", 25),
]


async def seed(db: AsyncSession) -> bool:
    """Insert the demo data. Returns False when an admin already exists."""
    existing = await db.scalar(select(User).where(User.role == Role.ADMIN).limit(1))
    if existing:
        logger.info(f"👤 Admin already exists: {existing.email}")
        return False

    admin = User(
        email=ADMIN_EMAIL,
        password=await SecurityService.hash_password(ADMIN_PASSWORD),
        first_name="Admin",
        last_name="Cilliarp",
        role=Role.ADMIN,
        bio="Cilliarp Academy administrator",
    )
    db.add(admin)

    student_hash = await SecurityService.hash_password(STUDENT_PASSWORD)
    for email, first_name, last_name, bio in STUDENTS:
        db.add(
            User(
                email=email,
                password=student_hash,
                first_name=first_name,
                last_name=last_name,
                role=Role.STUDENT,
                bio=bio,
            )
        )

    course = Course(
        title="Introduction to Web Development",
        description="Learn the fundamentals of web development with HTML, CSS and JavaScript.",
        price=299.99,
        is_published=True,
        instructor=f"{admin.first_name} {admin.last_name}",
    )
    course.lessons = [
        Lesson(title=title, content=content, duration=duration, order=i, is_published=True)
        for i, (title, content, duration) in enumerate(LESSONS, start=1)
    ]
    db.add(course)

    await db.commit()
    logger.info(f"✅ Admin created: {ADMIN_EMAIL}")
    logger.info(f"👥 {len(STUDENTS)} students created")
    logger.info(f"📚 Course '{course.title}' created with {len(LESSONS)} lessons")
    return True


async def main():
    setup_logger()
    logger.info("🌱 Seeding database")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        try:
            await seed(db)
        except Exception:
            await db.rollback()
            logger.exception("❌ Seed failed")
            raise
    await engine.dispose()
    logger.info("🎉 Seed finished")


if __name__ == "__main__":
    asyncio.run(main())
