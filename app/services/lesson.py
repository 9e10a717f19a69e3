# app/services/lesson.py
from typing import Optional, Sequence

from fastapi import Depends
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enum import Action, MediaCategory, MediaVisibility
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from app.core.policy import Actor, ensure_allowed, ensure_course_visible, ensure_lesson_visible
from app.db.models.database import Course, Enrollment, Lesson
from app.db.session import get_session
from app.libs.uploads import UploadPayload
from app.schemas.lessons import CreateLesson, LessonOrderItem, UpdateLesson
from app.services.shares.media import MediaReferenceManager
from app.services.shares.presenters import lesson_payload


class LessonService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        media: MediaReferenceManager = Depends(MediaReferenceManager),
    ):
        self.db = db
        self.media = media

    async def _get_lesson(self, lesson_id: int) -> Lesson | None:
        return await self.db.scalar(
            select(Lesson)
            .where(Lesson.id == lesson_id)
            .options(selectinload(Lesson.course))
            .execution_options(populate_existing=True)
        )

    async def _ensure_order_free(
        self, course_id: int, order: int, exclude_id: Optional[int] = None
    ) -> None:
        stmt = select(Lesson.id).where(Lesson.course_id == course_id, Lesson.order == order)
        if exclude_id is not None:
            stmt = stmt.where(Lesson.id != exclude_id)
        if await self.db.scalar(stmt.limit(1)):
            raise ConflictError(
                f"A lesson with order {order} already exists in course {course_id}"
            )

    async def _commit(self, conflict_message: str) -> None:
        # the (course_id, order) constraint still guards concurrent writers
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"⚠️ Lesson write rejected by constraint: {e.orig}")
            raise ConflictError(conflict_message)
        except Exception:
            await self.db.rollback()
            raise

    # ======================================================
    # ➕ Create / read
    # ======================================================
    async def create_lesson_async(self, schema: CreateLesson, actor: Actor) -> dict:
        ensure_allowed(actor, Action.LESSON_CREATE, message="Only admins can create lessons")

        course = await self.db.get(Course, schema.course_id)
        if not course:
            raise NotFoundError("Course not found")
        await self._ensure_order_free(schema.course_id, schema.order)

        lesson = Lesson(**schema.model_dump())
        self.db.add(lesson)
        await self._commit(
            f"A lesson with order {schema.order} already exists in course {schema.course_id}"
        )

        logger.info(f"📗 Lesson {lesson.id} created in course {course.id}")
        return lesson_payload(await self._get_lesson(lesson.id), with_course=True)

    async def list_lessons_async(
        self,
        actor: Actor,
        course_id: Optional[int] = None,
        is_published: Optional[bool] = None,
    ) -> list[dict]:
        stmt = select(Lesson).join(Course, Course.id == Lesson.course_id)

        if course_id is not None:
            ensure_course_visible(actor, await self.db.get(Course, course_id))
            stmt = stmt.where(Lesson.course_id == course_id)

        if not actor.is_admin:
            if is_published is False:
                return []
            stmt = stmt.where(Lesson.is_published.is_(True), Course.is_published.is_(True))
        elif is_published is not None:
            stmt = stmt.where(Lesson.is_published.is_(is_published))

        lessons = await self.db.scalars(
            stmt.options(selectinload(Lesson.course)).order_by(Lesson.course_id, Lesson.order)
        )
        return [lesson_payload(l, with_course=True) for l in lessons]

    async def get_lesson_async(self, lesson_id: int, actor: Actor) -> dict:
        lesson = await self._get_lesson(lesson_id)
        ensure_lesson_visible(actor, lesson)
        return lesson_payload(lesson, with_course=True)

    # ======================================================
    # ✏️ Update / delete
    # ======================================================
    async def update_lesson_async(
        self, lesson_id: int, schema: UpdateLesson, actor: Actor
    ) -> dict:
        ensure_allowed(actor, Action.LESSON_UPDATE, message="Only admins can update lessons")

        lesson = await self._get_lesson(lesson_id)
        if not lesson:
            raise NotFoundError("Lesson not found")

        changes = schema.model_dump(exclude_none=True)
        if "order" in changes and changes["order"] != lesson.order:
            await self._ensure_order_free(lesson.course_id, changes["order"], lesson.id)

        for field, value in changes.items():
            setattr(lesson, field, value)
        await self._commit(
            f"A lesson with order {lesson.order} already exists in course {lesson.course_id}"
        )

        logger.info(f"✏️ Lesson {lesson_id} updated")
        return lesson_payload(await self._get_lesson(lesson_id), with_course=True)

    async def delete_lesson_async(self, lesson_id: int, actor: Actor) -> dict:
        ensure_allowed(actor, Action.LESSON_DELETE, message="Only admins can delete lessons")

        lesson = await self.db.get(Lesson, lesson_id)
        if not lesson:
            raise NotFoundError("Lesson not found")

        video = lesson.video
        try:
            await self.db.delete(lesson)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"🗑️ Lesson {lesson_id} deleted")
        await self.media.delete(video)
        return {"message": "Lesson deleted successfully", "id": lesson_id}

    # ======================================================
    # 🔢 Reorder
    # ======================================================
    async def reorder_lessons_async(
        self, course_id: int, items: Sequence[LessonOrderItem], actor: Actor
    ) -> list[dict]:
        """
        Apply a batch of (lesson id, order) pairs in one transaction.

        1️⃣ every id must be unique in the batch and belong to the course
        2️⃣ target orders must be unique and not held by lessons outside the batch
        3️⃣ park the batch on negative orders, then write the final ones
        """
        ensure_allowed(actor, Action.LESSON_REORDER, message="Only admins can reorder lessons")

        course = await self.db.get(Course, course_id)
        if not course:
            raise NotFoundError("Course not found")
        if not items:
            raise ValidationError("Reorder batch is empty")

        ids = [item.id for item in items]
        orders = [item.order for item in items]
        if len(set(ids)) != len(ids):
            raise ValidationError("Each lesson may appear only once in a reorder batch")
        if any(order < 1 for order in orders):
            raise ValidationError("Lesson order must be a positive integer")

        found = (
            await self.db.scalars(
                select(Lesson.id).where(Lesson.id.in_(ids), Lesson.course_id == course_id)
            )
        ).all()
        if len(found) != len(ids):
            raise NotFoundError("Some lessons not found or do not belong to this course")

        if len(set(orders)) != len(orders):
            raise ConflictError("Duplicate order values in reorder batch")
        clash = await self.db.scalar(
            select(Lesson)
            .where(
                Lesson.course_id == course_id,
                Lesson.id.not_in(ids),
                Lesson.order.in_(orders),
            )
            .limit(1)
        )
        if clash:
            raise ConflictError(
                f"A lesson with order {clash.order} already exists in course {course_id}"
            )

        try:
            # unique (course_id, order) is checked per statement on most stores
            for item in items:
                await self.db.execute(
                    update(Lesson)
                    .where(Lesson.id == item.id)
                    .values(order=-item.id)
                    .execution_options(synchronize_session=False)
                )
            for item in items:
                await self.db.execute(
                    update(Lesson)
                    .where(Lesson.id == item.id)
                    .values(order=item.order)
                    .execution_options(synchronize_session=False)
                )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"⚠️ Reorder of course {course_id} rejected: {e.orig}")
            raise ConflictError("Lesson order conflict, no changes were applied")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"🔢 Reordered {len(items)} lessons in course {course_id}")
        lessons = await self.db.scalars(
            select(Lesson)
            .where(Lesson.course_id == course_id)
            .options(selectinload(Lesson.course))
            .order_by(Lesson.order)
            .execution_options(populate_existing=True)
        )
        return [lesson_payload(l) for l in lessons]

    # ======================================================
    # 🎬 Video
    # ======================================================
    async def set_video_async(
        self, lesson_id: int, upload: UploadPayload, actor: Actor
    ) -> dict:
        ensure_allowed(
            actor, Action.LESSON_MEDIA_UPLOAD, message="Only admins can upload lesson videos"
        )
        lesson = await self._get_lesson(lesson_id)
        if not lesson:
            raise NotFoundError("Lesson not found")

        async def swap(new_key: str):
            lesson.video = new_key
            try:
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        await self.media.replace(
            lesson.video,
            upload.content,
            MediaCategory.VIDEO,
            MediaVisibility.PRIVATE,
            swap,
            filename=upload.filename,
            content_type=upload.content_type,
        )
        return lesson_payload(await self._get_lesson(lesson_id), with_course=True)

    async def clear_video_async(self, lesson_id: int, actor: Actor) -> dict:
        ensure_allowed(
            actor, Action.LESSON_MEDIA_UPLOAD, message="Only admins can remove lesson videos"
        )
        lesson = await self._get_lesson(lesson_id)
        if not lesson:
            raise NotFoundError("Lesson not found")

        old_key = lesson.video
        lesson.video = None
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.media.delete(old_key)
        return lesson_payload(await self._get_lesson(lesson_id), with_course=True)

    async def get_video_url_async(self, lesson_id: int, actor: Actor) -> dict:
        lesson = await self._get_lesson(lesson_id)
        ensure_lesson_visible(actor, lesson)
        if not lesson.video:
            raise NotFoundError("Lesson has no video")

        if not actor.is_admin:
            enrolled = await self.db.scalar(
                select(Enrollment.id).where(
                    Enrollment.course_id == lesson.course_id,
                    Enrollment.student_id == actor.id,
                )
            )
            if not enrolled:
                raise ForbiddenError("You must be enrolled in this course to watch this video")

        return {"lesson_id": lesson.id, "url": await self.media.resolve_url(lesson.video)}
