"""Pydantic schemas for tasks.

Separate schemas for create/update/read keep the API clean:
- TaskCreate: what you POST to create a task
- TaskUpdate: what you PATCH to modify a task (only sent fields apply)
- TaskRead: what the API returns, with the owner's username
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v


class TaskUpdate(BaseModel):
    """Partial update — only fields present in the request body are applied.

    Routes call model_dump(exclude_unset=True), so an omitted field and a
    field sent as null are different things: description may be cleared with
    null, title and completed may not.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    completed: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("title must not be blank")
        return v

    @model_validator(mode="after")
    def reject_null_required_fields(self):
        for name in ("title", "completed"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class TaskRead(BaseModel):
    id: int
    title: str
    description: Optional[str]
    completed: bool
    owner: str = Field(validation_alias="owner_username")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
