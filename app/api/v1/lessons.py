from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile, status

from app.core.deps import AuthorizationService
from app.core.enum import Action, MediaCategory
from app.core.policy import ensure_allowed
from app.libs.uploads import read_upload
from app.schemas.lessons import CreateLesson, ReorderLessons, UpdateLesson
from app.services.lesson import LessonService

router = APIRouter(prefix="/lessons", tags=["Lessons"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_lesson(
    schema: CreateLesson = Body(...),
    lesson_service: LessonService = Depends(LessonService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await lesson_service.create_lesson_async(schema, actor)


@router.get("")
async def list_lessons(
    course_id: Optional[int] = Query(None),
    is_published: Optional[bool] = Query(None),
    lesson_service: LessonService = Depends(LessonService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor_if_any()
    return await lesson_service.list_lessons_async(actor, course_id, is_published)


@router.patch("/course/{course_id}/reorder")
async def reorder_lessons(
    course_id: int,
    schema: ReorderLessons = Body(...),
    lesson_service: LessonService = Depends(LessonService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await lesson_service.reorder_lessons_async(course_id, schema.lessons, actor)


@router.get("/{lesson_id}")
async def get_lesson(
    lesson_id: int,
    lesson_service: LessonService = Depends(LessonService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor_if_any()
    return await lesson_service.get_lesson_async(lesson_id, actor)


@router.patch("/{lesson_id}")
async def update_lesson(
    lesson_id: int,
    schema: UpdateLesson = Body(...),
    lesson_service: LessonService = Depends(LessonService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await lesson_service.update_lesson_async(lesson_id, schema, actor)


@router.delete("/{lesson_id}")
async def delete_lesson(
    lesson_id: int,
    lesson_service: LessonService = Depends(LessonService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await lesson_service.delete_lesson_async(lesson_id, actor)


# ===== VIDEO =====
@router.post("/{lesson_id}/video")
async def upload_video(
    lesson_id: int,
    file: UploadFile = File(...),
    lesson_service: LessonService = Depends(LessonService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    # refuse before buffering the body
    ensure_allowed(actor, Action.LESSON_MEDIA_UPLOAD, message="Only admins can upload lesson videos")
    upload = await read_upload(file, MediaCategory.VIDEO)
    return await lesson_service.set_video_async(lesson_id, upload, actor)


@router.delete("/{lesson_id}/video")
async def remove_video(
    lesson_id: int,
    lesson_service: LessonService = Depends(LessonService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await lesson_service.clear_video_async(lesson_id, actor)


@router.get("/{lesson_id}/video")
async def get_video(
    lesson_id: int,
    lesson_service: LessonService = Depends(LessonService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await lesson_service.get_video_url_async(lesson_id, actor)
