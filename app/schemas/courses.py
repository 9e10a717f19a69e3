from typing import Optional

from pydantic import BaseModel, Field


class CreateCourse(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str
    price: float = Field(ge=0)
    instructor: Optional[str] = None
    is_published: bool = False


class UpdateCourse(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    instructor: Optional[str] = None
    is_published: Optional[bool] = None
