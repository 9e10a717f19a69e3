from typing import List, Optional

from pydantic import BaseModel, Field


class CreateLesson(BaseModel):
    course_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    content: str
    order: int = Field(ge=1)
    duration: Optional[int] = Field(default=None, ge=0)
    is_published: bool = False


class UpdateLesson(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    content: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=1)
    duration: Optional[int] = Field(default=None, ge=0)
    is_published: Optional[bool] = None


class LessonOrderItem(BaseModel):
    id: int
    order: int = Field(ge=1)


class ReorderLessons(BaseModel):
    lessons: List[LessonOrderItem] = Field(min_length=1)
