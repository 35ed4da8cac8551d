"""Response envelopes returned by the tool dispatcher."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorEnvelope(BaseModel):
    """Uniform error payload; ``kind`` keeps the component failure type."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "kind": "SectionNotFound",
                "message": "No heading 'Setup' under Intro in root.md",
                "offending_field": "section",
            }
        }
    )

    kind: str = Field(..., description="Error kind, e.g. NotFound or InvalidArguments")
    message: str
    offending_field: Optional[str] = Field(
        default=None, description="Argument that caused the failure, when known"
    )


class ToolResponse(BaseModel):
    """Either a success payload or an error envelope for one tool call."""

    tool: str
    ok: bool
    result: Optional[Any] = None
    error: Optional[ErrorEnvelope] = None

    @classmethod
    def success(cls, tool: str, result: Any) -> "ToolResponse":
        return cls(tool=tool, ok=True, result=result)

    @classmethod
    def failure(
        cls, tool: str, kind: str, message: str, offending_field: Optional[str] = None
    ) -> "ToolResponse":
        return cls(
            tool=tool,
            ok=False,
            error=ErrorEnvelope(kind=kind, message=message, offending_field=offending_field),
        )


__all__ = ["ErrorEnvelope", "ToolResponse"]
