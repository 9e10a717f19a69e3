# Dict shapes shared by the services. Storage keys never leave this module
# unresolved: thumbnails/avatars become URLs, videos become a flag.
from app.db.models.database import Course, CourseReview, Enrollment, Lesson, User
from app.services.shares.media import MediaReferenceManager


def student_summary(user: User) -> dict:
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
    }


async def user_profile(user: User, media: MediaReferenceManager) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role.value,
        "bio": user.bio,
        "avatar_url": await media.resolve_optional(user.avatar),
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


async def course_summary(course: Course, media: MediaReferenceManager) -> dict:
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "price": float(course.price or 0),
        "is_published": course.is_published,
        "thumbnail_url": await media.resolve_optional(course.thumbnail),
    }


def lesson_payload(lesson: Lesson, with_course: bool = False) -> dict:
    data = {
        "id": lesson.id,
        "course_id": lesson.course_id,
        "title": lesson.title,
        "description": lesson.description,
        "content": lesson.content,
        "duration": lesson.duration,
        "order": lesson.order,
        "is_published": lesson.is_published,
        "has_video": bool(lesson.video),
        "created_at": lesson.created_at,
        "updated_at": lesson.updated_at,
    }
    if with_course:
        data["course"] = {
            "id": lesson.course.id,
            "title": lesson.course.title,
            "description": lesson.course.description,
            "is_published": lesson.course.is_published,
        }
    return data


def enrollment_summary(enrollment: Enrollment) -> dict:
    return {
        "id": enrollment.id,
        "progress": enrollment.progress,
        "completed_at": enrollment.completed_at,
        "enrolled_at": enrollment.created_at,
    }


def review_payload(review: CourseReview) -> dict:
    return {
        "id": review.id,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": review.created_at,
        "student": {
            "id": review.student.id,
            "first_name": review.student.first_name,
            "last_name": review.student.last_name,
        },
    }
