"""Pydantic schemas for provider results, pipeline output and batch reports."""
from typing import Literal, Optional, Union
from pydantic import BaseModel, Field


class SchemaResult(BaseModel):
    kind: Literal["schema"] = "schema"
    text: str


class SectionResult(BaseModel):
    kind: Literal["section"] = "section"
    title: Optional[str] = None             # e.g. "== Enums"
    content: str


class NotesResult(BaseModel):
    kind: Literal["notes"] = "notes"
    notes: list[str] = Field(default_factory=list)


ProviderResult = Union[SchemaResult, SectionResult, NotesResult]


class PipelineResult(BaseModel):
    schema_text: Optional[str] = None
    sections: list[SectionResult] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class AnnotationBlock(BaseModel):
    begin_marker: str
    end_marker: str
    body_text: str


class FailedModel(BaseModel):
    model: str
    error: str


class BatchReport(BaseModel):
    annotated: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: list[FailedModel] = Field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        return {
            "annotated": len(self.annotated),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }

    def merge(self, other: "BatchReport") -> "BatchReport":
        self.annotated.extend(other.annotated)
        self.skipped.extend(other.skipped)
        self.failed.extend(other.failed)
        return self


class BatchResponse(BaseModel):
    operation: Literal["annotate", "remove"]
    counts: dict[str, int]
    duration_seconds: float
    report: BatchReport
