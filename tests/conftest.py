import bcrypt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.enum import Role
from app.core.policy import Actor
from app.core.security import SecurityService
from app.db.models.database import Base, Course, Enrollment, Lesson, User
from app.db.session import get_session
from app.main import app
from app.services.course import CourseService
from app.services.enrollment import EnrollmentService
from app.services.lesson import LessonService
from app.services.shares.media import MediaReferenceManager
from app.services.shares.object_storage import get_object_storage
from app.services.user import UserService

PASSWORD = "secret123"
# low cost factor keeps the suite fast
PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()


class FakeStorage:
    """In-memory stand-in for MinioObjectStorage."""

    PUBLIC_PREFIX = "public/"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_puts = False
        self.fail_deletes = False

    async def put(self, key, content, content_type):
        if self.fail_puts:
            raise RuntimeError("storage unavailable")
        self.objects[key] = content
        return key

    async def delete(self, key):
        if self.fail_deletes:
            raise RuntimeError("storage unavailable")
        self.objects.pop(key, None)
        self.deleted.append(key)

    def public_url(self, key):
        return f"http://storage.test/bucket/{key}"

    async def url_for(self, key, expires=None):
        if key.startswith(self.PUBLIC_PREFIX):
            return self.public_url(key)
        return f"http://storage.test/bucket/{key}?X-Amz-Signature=test"


# ============================================================
# 🗄️ Database
# ============================================================
@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================
# 📦 Storage and services
# ============================================================
@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def media(storage):
    return MediaReferenceManager(storage)


@pytest.fixture
def course_service(session, media):
    return CourseService(db=session, media=media)


@pytest.fixture
def lesson_service(session, media):
    return LessonService(db=session, media=media)


@pytest.fixture
def enrollment_service(session, media):
    return EnrollmentService(db=session, media=media)


@pytest.fixture
def user_service(session, media, enrollment_service):
    return UserService(
        db=session,
        security=SecurityService(),
        media=media,
        enrollments=enrollment_service,
    )


# ============================================================
# 🏭 Factories
# ============================================================
@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    async def _make(role: Role = Role.STUDENT, email: str | None = None, **kwargs) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            password=PASSWORD_HASH,
            first_name=kwargs.pop("first_name", "Test"),
            last_name=kwargs.pop("last_name", f"User{counter['n']}"),
            role=role,
            **kwargs,
        )
        session.add(user)
        await session.commit()
        return user

    return _make


@pytest.fixture
def make_course(session):
    async def _make(title: str = "Intro", is_published: bool = True, **kwargs) -> Course:
        course = Course(
            title=title,
            description=kwargs.pop("description", f"{title} description"),
            price=kwargs.pop("price", 10),
            is_published=is_published,
            **kwargs,
        )
        session.add(course)
        await session.commit()
        return course

    return _make


@pytest.fixture
def make_lesson(session):
    async def _make(course: Course, order: int, is_published: bool = True, **kwargs) -> Lesson:
        lesson = Lesson(
            course_id=course.id,
            title=kwargs.pop("title", f"Lesson {order}"),
            content=kwargs.pop("content", "content"),
            order=order,
            is_published=is_published,
            **kwargs,
        )
        session.add(lesson)
        await session.commit()
        return lesson

    return _make


@pytest.fixture
def make_enrollment(session):
    async def _make(student: User, course: Course, progress: int = 0, **kwargs) -> Enrollment:
        enrollment = Enrollment(
            student_id=student.id, course_id=course.id, progress=progress, **kwargs
        )
        session.add(enrollment)
        await session.commit()
        return enrollment

    return _make


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(Role.ADMIN, email="admin@example.com")


@pytest_asyncio.fixture
async def student(make_user):
    return await make_user(Role.STUDENT, email="student@example.com")


@pytest_asyncio.fixture
async def other_student(make_user):
    return await make_user(Role.STUDENT, email="other@example.com")


@pytest.fixture
def admin_actor(admin):
    return Actor(id=admin.id, role=Role.ADMIN)


@pytest.fixture
def student_actor(student):
    return Actor(id=student.id, role=Role.STUDENT)


# ============================================================
# 🌐 HTTP client
# ============================================================
@pytest_asyncio.fixture
async def client(session_factory, storage):
    async def get_session_override():
        async with session_factory() as session:
            yield session

    async def get_object_storage_override():
        return storage

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_object_storage] = get_object_storage_override
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    async def _headers(user: User) -> dict:
        token = await SecurityService().create_access_token(str(user.id), user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers
