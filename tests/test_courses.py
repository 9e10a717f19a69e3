from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from app.core.exceptions import ForbiddenError, NotFoundError, StorageError
from app.db.models.database import Course, Enrollment, Lesson
from app.libs.uploads import UploadPayload
from app.schemas.courses import CreateCourse, UpdateCourse


def png(name="thumb.png"):
    return UploadPayload(content=b"\x89PNG", filename=name, content_type="image/png")


async def test_admin_creates_course(course_service, admin_actor):
    data = await course_service.create_course_async(
        CreateCourse(title="Intro", description="d", price=299.99, is_published=True),
        admin_actor,
    )

    assert data["id"]
    assert data["price"] == 299.99
    assert data["lessons"] == []
    assert data["thumbnail_url"] is None
    assert data["enrollments"] == []


async def test_student_cannot_create_course(course_service, student_actor, session):
    with pytest.raises(ForbiddenError):
        await course_service.create_course_async(
            CreateCourse(title="Intro", description="d", price=1), student_actor
        )
    assert await session.scalar(select(func.count(Course.id))) == 0


async def test_list_newest_first_with_search(course_service, make_course, admin_actor):
    base = datetime(2024, 1, 1)
    await make_course("Python basics", created_at=base)
    await make_course("Web", instructor="Guido", created_at=base + timedelta(days=1))
    await make_course("Cooking", description="no code here", created_at=base + timedelta(days=2))

    data = await course_service.list_courses_async(admin_actor)
    assert [c["title"] for c in data["courses"]] == ["Cooking", "Web", "Python basics"]

    data = await course_service.list_courses_async(admin_actor, search="PYTHON")
    assert [c["title"] for c in data["courses"]] == ["Python basics"]

    data = await course_service.list_courses_async(admin_actor, search="guido")
    assert [c["title"] for c in data["courses"]] == ["Web"]


async def test_search_treats_wildcards_literally(course_service, make_course, admin_actor):
    await make_course("axb")
    await make_course("plain")
    await make_course("a_b notes")
    await make_course("50% off")

    data = await course_service.list_courses_async(admin_actor, search="a_b")
    assert [c["title"] for c in data["courses"]] == ["a_b notes"]

    data = await course_service.list_courses_async(admin_actor, search="%")
    assert [c["title"] for c in data["courses"]] == ["50% off"]

    data = await course_service.list_courses_async(admin_actor, search="\\")
    assert data["courses"] == []


async def test_list_paginates(course_service, make_course, admin_actor):
    for i in range(5):
        await make_course(f"Course {i}")

    data = await course_service.list_courses_async(admin_actor, page=2, limit=2)

    assert len(data["courses"]) == 2
    assert data["pagination"] == {"page": 2, "limit": 2, "total": 5, "total_pages": 3}


async def test_student_listing_hides_drafts(course_service, make_course, student_actor):
    await make_course("Live", is_published=True)
    await make_course("Draft", is_published=False)

    data = await course_service.list_courses_async(student_actor)
    assert [c["title"] for c in data["courses"]] == ["Live"]

    data = await course_service.list_courses_async(student_actor, is_published=False)
    assert data["courses"] == []


async def test_get_draft_course_is_not_found_for_students(
    course_service, make_course, student_actor, admin_actor
):
    draft = await make_course("Draft", is_published=False)

    with pytest.raises(NotFoundError):
        await course_service.get_course_async(draft.id, student_actor)
    with pytest.raises(NotFoundError):
        await course_service.get_course_async(9999, student_actor)
    assert (await course_service.get_course_async(draft.id, admin_actor))["title"] == "Draft"


async def test_get_course_hides_roster_and_draft_lessons_from_students(
    course_service, make_course, make_lesson, make_enrollment, student, student_actor
):
    course = await make_course()
    await make_lesson(course, 2, title="Second")
    await make_lesson(course, 1, title="First")
    await make_lesson(course, 3, title="Draft", is_published=False)
    await make_enrollment(student, course)

    data = await course_service.get_course_async(course.id, student_actor)

    assert [l["title"] for l in data["lessons"]] == ["First", "Second"]
    assert data["enrollment_count"] == 1
    assert "enrollments" not in data
    assert "video" not in data["lessons"][0]


async def test_update_course(course_service, make_course, admin_actor, student_actor):
    course = await make_course("Old")

    with pytest.raises(ForbiddenError):
        await course_service.update_course_async(course.id, UpdateCourse(title="New"), student_actor)

    data = await course_service.update_course_async(
        course.id, UpdateCourse(title="New", price=5), admin_actor
    )
    assert data["title"] == "New"
    assert data["price"] == 5

    with pytest.raises(NotFoundError):
        await course_service.update_course_async(9999, UpdateCourse(title="x"), admin_actor)


async def test_delete_course_cascades_and_releases_media(
    course_service, make_course, make_lesson, make_enrollment, student, admin_actor, storage, session
):
    course = await make_course(thumbnail="public/images/a_thumb.png")
    storage.objects["public/images/a_thumb.png"] = b"x"
    await make_lesson(course, 1, video="private/videos/b_v.mp4")
    await make_lesson(course, 2)
    await make_enrollment(student, course)

    result = await course_service.delete_course_async(course.id, admin_actor)

    assert result["id"] == course.id
    assert await session.scalar(select(func.count(Lesson.id))) == 0
    assert await session.scalar(select(func.count(Enrollment.id))) == 0
    assert set(storage.deleted) == {"public/images/a_thumb.png", "private/videos/b_v.mp4"}


async def test_delete_course_survives_storage_failure(
    course_service, make_course, admin_actor, storage, session
):
    course = await make_course(thumbnail="public/images/a_thumb.png")
    storage.fail_deletes = True

    await course_service.delete_course_async(course.id, admin_actor)

    assert await session.get(Course, course.id) is None


async def test_student_cannot_delete_course(course_service, make_course, student_actor):
    course = await make_course()
    with pytest.raises(ForbiddenError):
        await course_service.delete_course_async(course.id, student_actor)


async def test_set_thumbnail_replaces_old_object(course_service, make_course, admin_actor, storage):
    course = await make_course()

    first = await course_service.set_thumbnail_async(course.id, png("a.png"), admin_actor)
    first_key = course.thumbnail
    second = await course_service.set_thumbnail_async(course.id, png("b.png"), admin_actor)

    assert first["thumbnail_url"].endswith("_a.png")
    assert second["thumbnail_url"].endswith("_b.png")
    assert first_key in storage.deleted
    assert list(storage.objects) == [course.thumbnail]


async def test_set_thumbnail_upload_failure_keeps_reference(
    course_service, make_course, admin_actor, storage
):
    course = await make_course(thumbnail="public/images/old.png")
    storage.fail_puts = True

    with pytest.raises(StorageError):
        await course_service.set_thumbnail_async(course.id, png(), admin_actor)
    assert course.thumbnail == "public/images/old.png"


async def test_clear_thumbnail(course_service, make_course, admin_actor, storage):
    course = await make_course(thumbnail="public/images/old.png")

    data = await course_service.clear_thumbnail_async(course.id, admin_actor)

    assert data["thumbnail_url"] is None
    assert storage.deleted == ["public/images/old.png"]


async def test_thumbnail_url(course_service, make_course, student_actor):
    course = await make_course(thumbnail="public/images/t.png")
    bare = await make_course("Bare")
    draft = await make_course("Draft", is_published=False, thumbnail="public/images/d.png")

    data = await course_service.get_thumbnail_url_async(course.id, student_actor)
    assert data["url"] == "http://storage.test/bucket/public/images/t.png"

    with pytest.raises(NotFoundError):
        await course_service.get_thumbnail_url_async(bare.id, student_actor)
    with pytest.raises(NotFoundError):
        await course_service.get_thumbnail_url_async(draft.id, student_actor)


async def test_course_stats(
    course_service, make_course, make_user, make_enrollment, admin_actor, student_actor
):
    course = await make_course()
    a, b, c = [await make_user() for _ in range(3)]
    await make_enrollment(a, course, progress=100, completed_at=datetime(2024, 1, 1))
    await make_enrollment(b, course, progress=50)
    await make_enrollment(c, course, progress=0)

    stats = await course_service.get_enrollment_stats_async(course.id, admin_actor)

    assert stats["total_enrollments"] == 3
    assert stats["completed_enrollments"] == 1
    assert stats["average_progress"] == 50.0
    assert stats["completion_rate"] == 33.33

    with pytest.raises(ForbiddenError):
        await course_service.get_enrollment_stats_async(course.id, student_actor)


async def test_course_stats_without_enrollments(course_service, make_course, admin_actor):
    course = await make_course()
    stats = await course_service.get_enrollment_stats_async(course.id, admin_actor)
    assert stats["completion_rate"] == 0.0
    assert stats["average_progress"] == 0.0
