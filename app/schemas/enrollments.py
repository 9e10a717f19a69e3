from typing import Optional

from pydantic import BaseModel, Field


class CreateEnrollment(BaseModel):
    course_id: int
    # optional: defaults to the caller
    student_id: Optional[int] = None


class UpdateEnrollment(BaseModel):
    progress: Optional[int] = Field(default=None, ge=0, le=100)
