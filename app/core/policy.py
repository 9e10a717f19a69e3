"""Access policy shared by every service.

One decision function answers "may this actor do that to this resource".
Services never compare roles themselves; they ask ``authorize`` (or the
raising helpers below) before any mutation or restricted read.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.core.enum import ADMIN_ONLY_ACTIONS, OWN_RESOURCE_ACTIONS, Action, Role
from app.core.exceptions import ForbiddenError, NotFoundError


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"

    def __bool__(self) -> bool:
        return self is Decision.ALLOW


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as supplied by the identity layer."""

    id: Optional[int]
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


ANONYMOUS = Actor(id=None, role=Role.STUDENT)


def authorize(
    actor_role: Role,
    actor_id: Optional[int],
    action: Action,
    resource_owner_id: Optional[int] = None,
    *,
    published: bool = True,
) -> Decision:
    """Decide whether ``actor`` may perform ``action``.

    Precedence:
    1. ADMIN may do everything.
    2. Own-resource actions need ``actor_id == resource_owner_id``.
    3. Admin-only actions are denied to everyone else.
    4. Reads of published content are allowed, unpublished content is not.
    Anything unrecognised is denied.
    """
    if actor_role == Role.ADMIN:
        return Decision.ALLOW

    if action in OWN_RESOURCE_ACTIONS:
        if actor_id is not None and actor_id == resource_owner_id:
            return Decision.ALLOW
        return Decision.DENY

    if action in ADMIN_ONLY_ACTIONS:
        return Decision.DENY

    if action == Action.CONTENT_READ:
        return Decision.ALLOW if published else Decision.DENY

    return Decision.DENY


def ensure_allowed(
    actor: Actor,
    action: Action,
    resource_owner_id: Optional[int] = None,
    message: str | None = None,
) -> None:
    if not authorize(actor.role, actor.id, action, resource_owner_id):
        raise ForbiddenError(message)


def can_view_course(actor: Actor, course_published: bool) -> bool:
    return bool(
        authorize(actor.role, actor.id, Action.CONTENT_READ, published=course_published)
    )


def can_view_lesson(actor: Actor, lesson_published: bool, course_published: bool) -> bool:
    return bool(
        authorize(
            actor.role,
            actor.id,
            Action.CONTENT_READ,
            published=lesson_published and course_published,
        )
    )


def ensure_course_visible(actor: Actor, course, message: str = "Course not found") -> None:
    """Missing and unpublished courses look the same to non-admins."""
    if course is None or not can_view_course(actor, bool(course.is_published)):
        raise NotFoundError(message)


def ensure_lesson_visible(actor: Actor, lesson, message: str = "Lesson not found") -> None:
    if lesson is None or not can_view_lesson(
        actor, bool(lesson.is_published), bool(lesson.course.is_published)
    ):
        raise NotFoundError(message)
