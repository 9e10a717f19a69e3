import pytest
from sqlalchemy import select

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.db.models.database import Lesson
from app.libs.uploads import UploadPayload
from app.schemas.lessons import CreateLesson, LessonOrderItem, UpdateLesson


def mp4(name="intro.mp4"):
    return UploadPayload(content=b"\x00\x00video", filename=name, content_type="video/mp4")


async def orders_of(session, course_id):
    rows = await session.execute(
        select(Lesson.id, Lesson.order)
        .where(Lesson.course_id == course_id)
        .execution_options(populate_existing=True)
    )
    return dict(rows.all())


async def test_create_lesson(lesson_service, make_course, admin_actor):
    course = await make_course()

    data = await lesson_service.create_lesson_async(
        CreateLesson(course_id=course.id, title="One", content="c", order=1), admin_actor
    )

    assert data["order"] == 1
    assert data["course"]["id"] == course.id
    assert data["has_video"] is False


async def test_create_lesson_order_conflict_names_course(
    lesson_service, make_course, make_lesson, admin_actor
):
    course = await make_course()
    await make_lesson(course, 1)

    with pytest.raises(ConflictError, match=f"course {course.id}"):
        await lesson_service.create_lesson_async(
            CreateLesson(course_id=course.id, title="Dup", content="c", order=1), admin_actor
        )


async def test_same_order_in_another_course_is_fine(
    lesson_service, make_course, make_lesson, admin_actor
):
    first = await make_course("A")
    second = await make_course("B")
    await make_lesson(first, 1)

    data = await lesson_service.create_lesson_async(
        CreateLesson(course_id=second.id, title="One", content="c", order=1), admin_actor
    )
    assert data["course_id"] == second.id


async def test_create_lesson_requires_admin_and_course(
    lesson_service, make_course, admin_actor, student_actor
):
    course = await make_course()
    schema = CreateLesson(course_id=course.id, title="One", content="c", order=1)

    with pytest.raises(ForbiddenError):
        await lesson_service.create_lesson_async(schema, student_actor)
    with pytest.raises(NotFoundError):
        await lesson_service.create_lesson_async(
            CreateLesson(course_id=9999, title="One", content="c", order=1), admin_actor
        )


async def test_update_lesson_order_conflict(lesson_service, make_course, make_lesson, admin_actor):
    course = await make_course()
    await make_lesson(course, 1)
    second = await make_lesson(course, 2)

    with pytest.raises(ConflictError):
        await lesson_service.update_lesson_async(second.id, UpdateLesson(order=1), admin_actor)

    data = await lesson_service.update_lesson_async(
        second.id, UpdateLesson(order=5, title="Moved"), admin_actor
    )
    assert data["order"] == 5
    assert data["title"] == "Moved"


async def test_list_lessons_visibility(
    lesson_service, make_course, make_lesson, student_actor, admin_actor
):
    live = await make_course("Live")
    draft = await make_course("Draft", is_published=False)
    await make_lesson(live, 2, title="L2")
    await make_lesson(live, 1, title="L1")
    await make_lesson(live, 3, title="Hidden", is_published=False)
    await make_lesson(draft, 1, title="D1")

    student_view = await lesson_service.list_lessons_async(student_actor)
    assert [l["title"] for l in student_view] == ["L1", "L2"]

    admin_view = await lesson_service.list_lessons_async(admin_actor, course_id=live.id)
    assert [l["title"] for l in admin_view] == ["L1", "L2", "Hidden"]

    with pytest.raises(NotFoundError):
        await lesson_service.list_lessons_async(student_actor, course_id=draft.id)


async def test_get_lesson_visibility(
    lesson_service, make_course, make_lesson, student_actor, admin_actor
):
    draft_course = await make_course(is_published=False)
    lesson = await make_lesson(draft_course, 1)

    with pytest.raises(NotFoundError):
        await lesson_service.get_lesson_async(lesson.id, student_actor)
    assert (await lesson_service.get_lesson_async(lesson.id, admin_actor))["id"] == lesson.id


async def test_delete_lesson_releases_video(
    lesson_service, make_course, make_lesson, admin_actor, storage, session
):
    course = await make_course()
    lesson = await make_lesson(course, 1, video="private/videos/x_v.mp4")

    await lesson_service.delete_lesson_async(lesson.id, admin_actor)

    assert storage.deleted == ["private/videos/x_v.mp4"]
    assert await session.get(Lesson, lesson.id) is None


async def test_reorder_swaps_orders_atomically(
    lesson_service, make_course, make_lesson, admin_actor, session
):
    course = await make_course()
    a = await make_lesson(course, 1)
    b = await make_lesson(course, 2)
    c = await make_lesson(course, 3)

    data = await lesson_service.reorder_lessons_async(
        course.id,
        [
            LessonOrderItem(id=a.id, order=3),
            LessonOrderItem(id=b.id, order=1),
            LessonOrderItem(id=c.id, order=2),
        ],
        admin_actor,
    )

    assert [l["id"] for l in data] == [b.id, c.id, a.id]
    assert await orders_of(session, course.id) == {a.id: 3, b.id: 1, c.id: 2}


async def test_reorder_rejects_foreign_lesson_without_changes(
    lesson_service, make_course, make_lesson, admin_actor, session
):
    course = await make_course("A")
    other = await make_course("B")
    a = await make_lesson(course, 1)
    b = await make_lesson(course, 2)
    stranger = await make_lesson(other, 1)

    with pytest.raises(NotFoundError, match="do not belong to this course"):
        await lesson_service.reorder_lessons_async(
            course.id,
            [
                LessonOrderItem(id=a.id, order=2),
                LessonOrderItem(id=b.id, order=1),
                LessonOrderItem(id=stranger.id, order=3),
            ],
            admin_actor,
        )
    assert await orders_of(session, course.id) == {a.id: 1, b.id: 2}


async def test_reorder_rejects_duplicates(
    lesson_service, make_course, make_lesson, admin_actor, session
):
    course = await make_course()
    a = await make_lesson(course, 1)
    b = await make_lesson(course, 2)
    c = await make_lesson(course, 3)

    with pytest.raises(ConflictError):
        await lesson_service.reorder_lessons_async(
            course.id,
            [LessonOrderItem(id=a.id, order=5), LessonOrderItem(id=b.id, order=5)],
            admin_actor,
        )
    # c keeps order 3, outside the batch
    with pytest.raises(ConflictError):
        await lesson_service.reorder_lessons_async(
            course.id, [LessonOrderItem(id=a.id, order=3)], admin_actor
        )
    with pytest.raises(ValidationError):
        await lesson_service.reorder_lessons_async(
            course.id,
            [LessonOrderItem(id=a.id, order=4), LessonOrderItem(id=a.id, order=6)],
            admin_actor,
        )
    assert await orders_of(session, course.id) == {a.id: 1, b.id: 2, c.id: 3}


async def test_reorder_requires_admin(lesson_service, make_course, make_lesson, student_actor):
    course = await make_course()
    a = await make_lesson(course, 1)
    with pytest.raises(ForbiddenError):
        await lesson_service.reorder_lessons_async(
            course.id, [LessonOrderItem(id=a.id, order=2)], student_actor
        )


async def test_set_video_is_private_and_replaces(
    lesson_service, make_course, make_lesson, admin_actor, storage
):
    course = await make_course()
    lesson = await make_lesson(course, 1)

    data = await lesson_service.set_video_async(lesson.id, mp4("a.mp4"), admin_actor)
    first_key = lesson.video
    await lesson_service.set_video_async(lesson.id, mp4("b.mp4"), admin_actor)

    assert data["has_video"] is True
    assert first_key.startswith("private/videos/")
    assert storage.deleted == [first_key]
    assert lesson.video.endswith("_b.mp4")


async def test_clear_video(lesson_service, make_course, make_lesson, admin_actor, storage):
    course = await make_course()
    lesson = await make_lesson(course, 1, video="private/videos/old.mp4")

    data = await lesson_service.clear_video_async(lesson.id, admin_actor)

    assert data["has_video"] is False
    assert storage.deleted == ["private/videos/old.mp4"]


async def test_video_url_requires_enrollment(
    lesson_service,
    make_course,
    make_lesson,
    make_enrollment,
    student,
    student_actor,
    admin_actor,
):
    course = await make_course()
    lesson = await make_lesson(course, 1, video="private/videos/v.mp4")

    with pytest.raises(ForbiddenError):
        await lesson_service.get_video_url_async(lesson.id, student_actor)

    await make_enrollment(student, course)
    data = await lesson_service.get_video_url_async(lesson.id, student_actor)
    assert "X-Amz-Signature" in data["url"]

    admin_data = await lesson_service.get_video_url_async(lesson.id, admin_actor)
    assert admin_data["lesson_id"] == lesson.id


async def test_video_url_of_hidden_lesson_is_not_found(
    lesson_service, make_course, make_lesson, make_enrollment, student, student_actor
):
    course = await make_course()
    lesson = await make_lesson(course, 1, is_published=False, video="private/videos/v.mp4")
    no_video = await make_lesson(course, 2)
    await make_enrollment(student, course)

    with pytest.raises(NotFoundError):
        await lesson_service.get_video_url_async(lesson.id, student_actor)
    with pytest.raises(NotFoundError):
        await lesson_service.get_video_url_async(no_video.id, student_actor)
