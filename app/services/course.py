# app/services/course.py
import math
from typing import Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enum import Action, MediaCategory, MediaVisibility
from app.core.exceptions import NotFoundError
from app.core.policy import Actor, ensure_allowed, ensure_course_visible
from app.db.models.database import Course, CourseReview, Enrollment, Lesson
from app.db.session import get_session
from app.libs.uploads import UploadPayload
from app.schemas.courses import CreateCourse, UpdateCourse
from app.services.shares.media import MediaReferenceManager
from app.services.shares.presenters import (
    course_summary,
    enrollment_summary,
    lesson_payload,
    review_payload,
    student_summary,
)


class CourseService:
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
    async def _get_course(self, course_id: int, *options) -> Course | None:
        return await self.db.scalar(
            select(Course)
            .where(Course.id == course_id)
            .options(*options)
            .execution_options(populate_existing=True)
        )

    async def _enrollment_counts(self, course_ids: list[int]) -> dict[int, int]:
        if not course_ids:
            return {}
        rows = await self.db.execute(
            select(Enrollment.course_id, func.count(Enrollment.id))
            .where(Enrollment.course_id.in_(course_ids))
            .group_by(Enrollment.course_id)
        )
        return {course_id: count for course_id, count in rows.all()}

    async def _course_payload(self, course: Course, actor: Actor) -> dict:
        """Detail shape: ordered lessons, reviews, and the roster for admins."""
        data = await course_summary(course, self.media)
        lessons = course.lessons
        if not actor.is_admin:
            lessons = [l for l in lessons if l.is_published]
        data.update(
            {
                "instructor": course.instructor,
                "created_at": course.created_at,
                "updated_at": course.updated_at,
                "lessons": [lesson_payload(l) for l in lessons],
                "reviews": [review_payload(r) for r in course.reviews],
                "enrollment_count": len(course.enrollments),
            }
        )
        if actor.is_admin:
            data["enrollments"] = [
                {**enrollment_summary(e), "student": student_summary(e.student)}
                for e in course.enrollments
            ]
        return data

    def _detail_options(self):
        return (
            selectinload(Course.lessons),
            selectinload(Course.enrollments).selectinload(Enrollment.student),
            selectinload(Course.reviews).selectinload(CourseReview.student),
        )

    # ======================================================
    # ➕ Create
    # ======================================================
    async def create_course_async(self, schema: CreateCourse, actor: Actor) -> dict:
        ensure_allowed(actor, Action.COURSE_CREATE, message="Only admins can create courses")

        course = Course(**schema.model_dump())
        self.db.add(course)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"📚 Course {course.id} created by user {actor.id}")
        course = await self._get_course(course.id, *self._detail_options())
        return await self._course_payload(course, actor)

    # ======================================================
    # 📋 List / detail
    # ======================================================
    async def list_courses_async(
        self,
        actor: Actor,
        is_published: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        page = max(page, 1)
        limit = max(limit, 1)
        empty = {
            "courses": [],
            "pagination": {"page": page, "limit": limit, "total": 0, "total_pages": 0},
        }

        # non-admins only ever see published courses
        if not actor.is_admin:
            if is_published is False:
                return empty
            is_published = True

        filters = []
        if is_published is not None:
            filters.append(Course.is_published.is_(is_published))
        if search:
            # match the term literally: LIKE wildcards in user input are escaped
            term = (
                search.strip()
                .replace("\\", "\\\\")
                .replace("%", "\\%")
                .replace("_", "\\_")
            )
            keyword = f"%{term}%"
            filters.append(
                or_(
                    Course.title.ilike(keyword, escape="\\"),
                    Course.description.ilike(keyword, escape="\\"),
                    Course.instructor.ilike(keyword, escape="\\"),
                )
            )

        total = await self.db.scalar(
            select(func.count()).select_from(Course).where(*filters)
        ) or 0
        courses = (
            await self.db.scalars(
                select(Course)
                .where(*filters)
                .options(selectinload(Course.lessons))
                .order_by(Course.created_at.desc(), Course.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).all()
        counts = await self._enrollment_counts([c.id for c in courses])

        items = []
        for course in courses:
            data = await course_summary(course, self.media)
            data.update(
                {
                    "instructor": course.instructor,
                    "created_at": course.created_at,
                    "updated_at": course.updated_at,
                    "lessons": [
                        lesson_payload(l) for l in course.lessons if l.is_published
                    ],
                    "enrollment_count": counts.get(course.id, 0),
                }
            )
            items.append(data)

        return {
            "courses": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if total else 0,
            },
        }

    async def get_course_async(self, course_id: int, actor: Actor) -> dict:
        course = await self._get_course(course_id, *self._detail_options())
        ensure_course_visible(actor, course)
        return await self._course_payload(course, actor)

    # ======================================================
    # ✏️ Update / delete
    # ======================================================
    async def update_course_async(
        self, course_id: int, schema: UpdateCourse, actor: Actor
    ) -> dict:
        ensure_allowed(actor, Action.COURSE_UPDATE, message="Only admins can update courses")

        course = await self.db.get(Course, course_id)
        if not course:
            raise NotFoundError("Course not found")

        for field, value in schema.model_dump(exclude_none=True).items():
            setattr(course, field, value)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"✏️ Course {course_id} updated")
        course = await self._get_course(course_id, *self._detail_options())
        return await self._course_payload(course, actor)

    async def delete_course_async(self, course_id: int, actor: Actor) -> dict:
        ensure_allowed(actor, Action.COURSE_DELETE, message="Only admins can delete courses")

        # collections must be loaded for the ORM cascade to run under asyncio
        course = await self._get_course(
            course_id,
            selectinload(Course.lessons),
            selectinload(Course.enrollments),
            selectinload(Course.reviews),
        )
        if not course:
            raise NotFoundError("Course not found")

        keys = [course.thumbnail] + [l.video for l in course.lessons]
        try:
            await self.db.delete(course)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"🗑️ Course {course_id} deleted")
        await self.media.delete_many(k for k in keys if k)
        return {"message": "Course deleted successfully", "id": course_id}

    # ======================================================
    # 🖼️ Thumbnail
    # ======================================================
    async def set_thumbnail_async(
        self, course_id: int, upload: UploadPayload, actor: Actor
    ) -> dict:
        ensure_allowed(
            actor, Action.COURSE_MEDIA_UPLOAD, message="Only admins can upload course thumbnails"
        )
        course = await self.db.get(Course, course_id)
        if not course:
            raise NotFoundError("Course not found")

        async def swap(new_key: str):
            course.thumbnail = new_key
            try:
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        await self.media.replace(
            course.thumbnail,
            upload.content,
            MediaCategory.IMAGE,
            MediaVisibility.PUBLIC,
            swap,
            filename=upload.filename,
            content_type=upload.content_type,
        )
        return await course_summary(course, self.media)

    async def clear_thumbnail_async(self, course_id: int, actor: Actor) -> dict:
        ensure_allowed(
            actor, Action.COURSE_MEDIA_UPLOAD, message="Only admins can remove course thumbnails"
        )
        course = await self.db.get(Course, course_id)
        if not course:
            raise NotFoundError("Course not found")

        old_key = course.thumbnail
        course.thumbnail = None
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.media.delete(old_key)
        return await course_summary(course, self.media)

    async def get_thumbnail_url_async(self, course_id: int, actor: Actor) -> dict:
        course = await self.db.get(Course, course_id)
        ensure_course_visible(actor, course)
        if not course.thumbnail:
            raise NotFoundError("Course has no thumbnail")
        return {"course_id": course.id, "url": await self.media.resolve_url(course.thumbnail)}

    # ======================================================
    # 📊 Stats
    # ======================================================
    async def get_enrollment_stats_async(self, course_id: int, actor: Actor) -> dict:
        ensure_allowed(actor, Action.COURSE_STATS_VIEW, message="Only admins can view course stats")

        course = await self.db.get(Course, course_id)
        if not course:
            raise NotFoundError("Course not found")

        total, completed, average = (
            await self.db.execute(
                select(
                    func.count(Enrollment.id),
                    func.count(Enrollment.completed_at),
                    func.avg(Enrollment.progress),
                ).where(Enrollment.course_id == course_id)
            )
        ).one()
        total_lessons = await self.db.scalar(
            select(func.count(Lesson.id)).where(Lesson.course_id == course_id)
        )

        return {
            "course_id": course_id,
            "title": course.title,
            "total_lessons": total_lessons or 0,
            "total_enrollments": total,
            "completed_enrollments": completed,
            "average_progress": round(float(average or 0), 2),
            "completion_rate": round(completed / total * 100, 2) if total else 0.0,
        }
