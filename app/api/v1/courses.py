from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile, status

from app.core.deps import AuthorizationService
from app.core.enum import Action, MediaCategory
from app.core.policy import ensure_allowed
from app.libs.uploads import read_upload
from app.schemas.courses import CreateCourse, UpdateCourse
from app.services.course import CourseService

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_course(
    schema: CreateCourse = Body(...),
    course_service: CourseService = Depends(CourseService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await course_service.create_course_async(schema, actor)


@router.get("")
async def list_courses(
    is_published: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    course_service: CourseService = Depends(CourseService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor_if_any()
    return await course_service.list_courses_async(actor, is_published, search, page, limit)


@router.get("/{course_id}")
async def get_course(
    course_id: int,
    course_service: CourseService = Depends(CourseService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor_if_any()
    return await course_service.get_course_async(course_id, actor)


@router.patch("/{course_id}")
async def update_course(
    course_id: int,
    schema: UpdateCourse = Body(...),
    course_service: CourseService = Depends(CourseService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await course_service.update_course_async(course_id, schema, actor)


@router.delete("/{course_id}")
async def delete_course(
    course_id: int,
    course_service: CourseService = Depends(CourseService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await course_service.delete_course_async(course_id, actor)


# ===== THUMBNAIL =====
@router.post("/{course_id}/thumbnail")
async def upload_thumbnail(
    course_id: int,
    file: UploadFile = File(...),
    course_service: CourseService = Depends(CourseService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    ensure_allowed(actor, Action.COURSE_MEDIA_UPLOAD, message="Only admins can upload course thumbnails")
    upload = await read_upload(file, MediaCategory.IMAGE)
    return await course_service.set_thumbnail_async(course_id, upload, actor)


@router.delete("/{course_id}/thumbnail")
async def remove_thumbnail(
    course_id: int,
    course_service: CourseService = Depends(CourseService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await course_service.clear_thumbnail_async(course_id, actor)


@router.get("/{course_id}/thumbnail")
async def get_thumbnail(
    course_id: int,
    course_service: CourseService = Depends(CourseService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor_if_any()
    return await course_service.get_thumbnail_url_async(course_id, actor)


# ===== STATS =====
@router.get("/{course_id}/stats")
async def get_course_stats(
    course_id: int,
    course_service: CourseService = Depends(CourseService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await course_service.get_enrollment_stats_async(course_id, actor)
