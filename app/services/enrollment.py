# app/services/enrollment.py
from collections import Counter
from datetime import datetime
from typing import Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enum import Action, Role
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.policy import Actor, ensure_allowed
from app.db.models.database import Course, Enrollment, User
from app.db.session import get_session
from app.libs.formats.datetime import month_key, now
from app.schemas.enrollments import CreateEnrollment, UpdateEnrollment
from app.services.shares.media import MediaReferenceManager
from app.services.shares.presenters import (
    course_summary,
    enrollment_summary,
    lesson_payload,
    student_summary,
)


def apply_progress(
    enrollment: Enrollment, progress: int, at: Optional[datetime] = None
) -> None:
    """Set ``progress`` and keep ``completed_at`` in step with it.

    Reaching 100 stamps completion once; dropping below 100 clears it.
    """
    if progress < 0 or progress > 100:
        raise ValidationError("Progress must be between 0 and 100")

    if progress == 100 and enrollment.completed_at is None:
        enrollment.completed_at = at or now()
    elif progress < 100 and enrollment.completed_at is not None:
        enrollment.completed_at = None
    enrollment.progress = progress


class EnrollmentService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        media: MediaReferenceManager = Depends(MediaReferenceManager),
    ):
        self.db = db
        self.media = media

    # ======================================================
    # 🔧 Helpers
    # ======================================================
    async def _get_enrollment(self, enrollment_id: int) -> Enrollment | None:
        return await self.db.scalar(
            select(Enrollment)
            .where(Enrollment.id == enrollment_id)
            .options(selectinload(Enrollment.student), selectinload(Enrollment.course))
            .execution_options(populate_existing=True)
        )

    async def _payload(self, enrollment: Enrollment) -> dict:
        data = enrollment_summary(enrollment)
        data.update(
            {
                "student_id": enrollment.student_id,
                "course_id": enrollment.course_id,
                "updated_at": enrollment.updated_at,
                "student": student_summary(enrollment.student),
                "course": await course_summary(enrollment.course, self.media),
            }
        )
        return data

    # ======================================================
    # ➕ Enroll
    # ======================================================
    async def create_enrollment_async(
        self, schema: CreateEnrollment, actor: Actor
    ) -> dict:
        student_id = actor.id
        if schema.student_id is not None and schema.student_id != actor.id:
            ensure_allowed(
                actor, Action.ENROLL_OTHER, message="Only admins can enroll other users"
            )
            student_id = schema.student_id
        else:
            ensure_allowed(actor, Action.ENROLL_SELF, actor.id)

        course = await self.db.get(Course, schema.course_id)
        if not course:
            raise NotFoundError("Course not found")
        if not course.is_published and not actor.is_admin:
            raise ForbiddenError("Cannot enroll in an unpublished course")

        student = await self.db.get(User, student_id)
        if not student:
            raise NotFoundError("Student not found")

        existing = await self.db.scalar(
            select(Enrollment.id).where(
                Enrollment.student_id == student_id,
                Enrollment.course_id == course.id,
            )
        )
        if existing:
            raise ConflictError("Student is already enrolled in this course")

        enrollment = Enrollment(student_id=student_id, course_id=course.id, progress=0)
        self.db.add(enrollment)
        try:
            await self.db.commit()
        except IntegrityError:
            # concurrent enrollment of the same pair
            await self.db.rollback()
            raise ConflictError("Student is already enrolled in this course")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"🎓 User {student_id} enrolled in course {course.id}")
        return await self._payload(await self._get_enrollment(enrollment.id))

    # ======================================================
    # 📋 Read
    # ======================================================
    async def list_enrollments_async(
        self,
        actor: Actor,
        student_id: Optional[int] = None,
        course_id: Optional[int] = None,
    ) -> list[dict]:
        stmt = select(Enrollment).options(
            selectinload(Enrollment.student), selectinload(Enrollment.course)
        )
        # non-admins are pinned to their own rows whatever they ask for
        if not actor.is_admin:
            stmt = stmt.where(Enrollment.student_id == actor.id)
        elif student_id is not None:
            stmt = stmt.where(Enrollment.student_id == student_id)
        if course_id is not None:
            stmt = stmt.where(Enrollment.course_id == course_id)

        enrollments = await self.db.scalars(
            stmt.order_by(Enrollment.created_at.desc(), Enrollment.id.desc())
        )
        return [await self._payload(e) for e in enrollments]

    async def get_enrollment_async(self, enrollment_id: int, actor: Actor) -> dict:
        enrollment = await self._get_enrollment(enrollment_id)
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        ensure_allowed(
            actor,
            Action.ENROLLMENT_VIEW,
            enrollment.student_id,
            "You can only view your own enrollments",
        )
        return await self._payload(enrollment)

    # ======================================================
    # ✏️ Progress / delete
    # ======================================================
    async def update_enrollment_async(
        self, enrollment_id: int, schema: UpdateEnrollment, actor: Actor
    ) -> dict:
        enrollment = await self._get_enrollment(enrollment_id)
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        ensure_allowed(
            actor,
            Action.ENROLLMENT_UPDATE,
            enrollment.student_id,
            "You can only update your own enrollments",
        )

        if schema.progress is not None:
            apply_progress(enrollment, schema.progress)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"📈 Enrollment {enrollment_id} progress={enrollment.progress}")
        return await self._payload(await self._get_enrollment(enrollment_id))

    async def delete_enrollment_async(self, enrollment_id: int, actor: Actor) -> dict:
        enrollment = await self.db.get(Enrollment, enrollment_id)
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        ensure_allowed(
            actor,
            Action.ENROLLMENT_DELETE,
            enrollment.student_id,
            "You can only delete your own enrollments",
        )

        try:
            await self.db.delete(enrollment)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"🗑️ Enrollment {enrollment_id} deleted")
        return {"message": "Enrollment deleted successfully", "id": enrollment_id}

    async def delete_by_student_async(self, student_id: int) -> int:
        """Remove every enrollment of ``student_id``. The caller commits."""
        result = await self.db.execute(
            delete(Enrollment).where(Enrollment.student_id == student_id)
        )
        return result.rowcount or 0

    # ======================================================
    # 👥 Per student / per course
    # ======================================================
    async def get_student_courses_async(self, student_id: int, actor: Actor) -> list[dict]:
        ensure_allowed(
            actor,
            Action.STUDENT_COURSES_VIEW,
            student_id,
            "You can only view your own courses",
        )
        enrollments = await self.db.scalars(
            select(Enrollment)
            .where(Enrollment.student_id == student_id)
            .options(selectinload(Enrollment.course).selectinload(Course.lessons))
            .order_by(Enrollment.created_at.desc(), Enrollment.id.desc())
        )

        data = []
        for e in enrollments:
            course = await course_summary(e.course, self.media)
            course["lessons"] = [lesson_payload(l) for l in e.course.lessons if l.is_published]
            data.append({**enrollment_summary(e), "course": course})
        return data

    async def get_course_students_async(self, course_id: int, actor: Actor) -> list[dict]:
        ensure_allowed(
            actor, Action.COURSE_ROSTER_VIEW, message="Only admins can view course students"
        )
        if not await self.db.get(Course, course_id):
            raise NotFoundError("Course not found")

        enrollments = await self.db.scalars(
            select(Enrollment)
            .where(Enrollment.course_id == course_id)
            .options(selectinload(Enrollment.student))
            .order_by(Enrollment.created_at.desc(), Enrollment.id.desc())
        )
        return [
            {**enrollment_summary(e), "student": student_summary(e.student)}
            for e in enrollments
        ]

    # ======================================================
    # 📊 Stats
    # ======================================================
    async def get_enrollment_stats_async(self, actor: Actor) -> dict:
        ensure_allowed(
            actor, Action.ENROLLMENT_STATS_VIEW, message="Only admins can view enrollment stats"
        )

        total, completed, average = (
            await self.db.execute(
                select(
                    func.count(Enrollment.id),
                    func.count(Enrollment.completed_at),
                    func.avg(Enrollment.progress),
                )
            )
        ).one()
        total_students = await self.db.scalar(
            select(func.count(User.id)).where(User.role == Role.STUDENT)
        )
        total_courses = await self.db.scalar(select(func.count(Course.id)))

        # grouped here rather than in SQL: month truncation differs per backend
        created = await self.db.scalars(select(Enrollment.created_at))
        by_month = Counter(month_key(dt) for dt in created)
        months = sorted(by_month.items(), reverse=True)[:12]

        return {
            "total_enrollments": total,
            "completed_enrollments": completed,
            "active_enrollments": total - completed,
            "completion_rate": round(completed / total * 100, 2) if total else 0.0,
            "average_progress": round(float(average or 0), 2),
            "total_students": total_students or 0,
            "total_courses": total_courses or 0,
            "enrollments_by_month": [
                {"month": month, "count": count} for month, count in months
            ],
        }
