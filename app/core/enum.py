from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    STUDENT = "STUDENT"


class Action(str, Enum):
    """Operations the access policy can be asked about."""

    # admin-only
    COURSE_CREATE = "course:create"
    COURSE_UPDATE = "course:update"
    COURSE_DELETE = "course:delete"
    COURSE_MEDIA_UPLOAD = "course:media_upload"
    COURSE_STATS_VIEW = "course:stats_view"
    COURSE_ROSTER_VIEW = "course:roster_view"
    LESSON_CREATE = "lesson:create"
    LESSON_UPDATE = "lesson:update"
    LESSON_DELETE = "lesson:delete"
    LESSON_REORDER = "lesson:reorder"
    LESSON_MEDIA_UPLOAD = "lesson:media_upload"
    ENROLLMENT_STATS_VIEW = "enrollment:stats_view"
    ENROLL_OTHER = "enrollment:enroll_other"
    USER_CREATE = "user:create"
    USER_LIST = "user:list"
    USER_ROLE_CHANGE = "user:role_change"

    # own resource
    PROFILE_VIEW = "profile:view"
    PROFILE_UPDATE = "profile:update"
    PROFILE_DELETE = "profile:delete"
    AVATAR_UPDATE = "profile:avatar_update"
    ENROLL_SELF = "enrollment:enroll_self"
    ENROLLMENT_VIEW = "enrollment:view"
    ENROLLMENT_UPDATE = "enrollment:update"
    ENROLLMENT_DELETE = "enrollment:delete"
    STUDENT_COURSES_VIEW = "enrollment:student_courses_view"

    # visibility gated
    CONTENT_READ = "content:read"


ADMIN_ONLY_ACTIONS = frozenset(
    {
        Action.COURSE_CREATE,
        Action.COURSE_UPDATE,
        Action.COURSE_DELETE,
        Action.COURSE_MEDIA_UPLOAD,
        Action.COURSE_STATS_VIEW,
        Action.COURSE_ROSTER_VIEW,
        Action.LESSON_CREATE,
        Action.LESSON_UPDATE,
        Action.LESSON_DELETE,
        Action.LESSON_REORDER,
        Action.LESSON_MEDIA_UPLOAD,
        Action.ENROLLMENT_STATS_VIEW,
        Action.ENROLL_OTHER,
        Action.USER_CREATE,
        Action.USER_LIST,
        Action.USER_ROLE_CHANGE,
    }
)

OWN_RESOURCE_ACTIONS = frozenset(
    {
        Action.PROFILE_VIEW,
        Action.PROFILE_UPDATE,
        Action.PROFILE_DELETE,
        Action.AVATAR_UPDATE,
        Action.ENROLL_SELF,
        Action.ENROLLMENT_VIEW,
        Action.ENROLLMENT_UPDATE,
        Action.ENROLLMENT_DELETE,
        Action.STUDENT_COURSES_VIEW,
    }
)


class MediaCategory(str, Enum):
    """Logical kind of a stored object; value is the storage folder."""

    IMAGE = "images"
    VIDEO = "videos"
    DOCUMENT = "documents"


class MediaVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
