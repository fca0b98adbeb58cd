"""Pydantic schema for view / materialized view facts."""
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator


class ViewDescriptor(BaseModel):
    exists: bool = False
    kind: Literal["regular", "materialized", "none"] = "none"
    updatable: bool = False
    dependencies: list[str] = Field(default_factory=list)
    refresh_strategy: Optional[str] = None
    last_refreshed: Optional[datetime] = None
    definition: Optional[str] = None

    @model_validator(mode="after")
    def _none_kind_is_empty(self) -> "ViewDescriptor":
        if self.kind == "none" or not self.exists:
            if self.exists or self.kind != "none" or self.updatable or self.dependencies \
                    or self.refresh_strategy or self.last_refreshed or self.definition:
                raise ValueError("a descriptor for a non-view must not carry view facts")
        return self

    @property
    def materialized(self) -> bool:
        return self.kind == "materialized"


NOT_A_VIEW = ViewDescriptor()
