from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from app.core.deps import AuthorizationService
from app.schemas.enrollments import CreateEnrollment, UpdateEnrollment
from app.services.enrollment import EnrollmentService

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def enroll(
    schema: CreateEnrollment = Body(...),
    enrollment_service: EnrollmentService = Depends(EnrollmentService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await enrollment_service.create_enrollment_async(schema, actor)


@router.get("")
async def list_enrollments(
    student_id: Optional[int] = Query(None),
    course_id: Optional[int] = Query(None),
    enrollment_service: EnrollmentService = Depends(EnrollmentService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await enrollment_service.list_enrollments_async(actor, student_id, course_id)


@router.get("/stats")
async def get_stats(
    enrollment_service: EnrollmentService = Depends(EnrollmentService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await enrollment_service.get_enrollment_stats_async(actor)


@router.get("/student/{student_id}/courses")
async def get_student_courses(
    student_id: int,
    enrollment_service: EnrollmentService = Depends(EnrollmentService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await enrollment_service.get_student_courses_async(student_id, actor)


@router.get("/course/{course_id}/students")
async def get_course_students(
    course_id: int,
    enrollment_service: EnrollmentService = Depends(EnrollmentService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await enrollment_service.get_course_students_async(course_id, actor)


@router.get("/{enrollment_id}")
async def get_enrollment(
    enrollment_id: int,
    enrollment_service: EnrollmentService = Depends(EnrollmentService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await enrollment_service.get_enrollment_async(enrollment_id, actor)


@router.patch("/{enrollment_id}")
async def update_enrollment(
    enrollment_id: int,
    schema: UpdateEnrollment = Body(...),
    enrollment_service: EnrollmentService = Depends(EnrollmentService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await enrollment_service.update_enrollment_async(enrollment_id, schema, actor)


@router.delete("/{enrollment_id}")
async def delete_enrollment(
    enrollment_id: int,
    enrollment_service: EnrollmentService = Depends(EnrollmentService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    actor = await authorization.get_current_actor()
    return await enrollment_service.delete_enrollment_async(enrollment_id, actor)
