"""Base Pydantic response models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BaseResponse(BaseModel):
    """Base response model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = Field(
        default=None, description="Field that caused the error (for validation errors)"
    )
    message: str = Field(description="Error message")
    type: str | None = Field(default=None, description="Error type code")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: dict[str, Any] = Field(description="Error details")

    @classmethod
    def create(
        cls,
        code: int,
        message: str,
        correlation_id: str | None = None,
        details: list[ErrorDetail] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> "ErrorResponse":
        """Create a standardized error response.

        Args:
            code: HTTP status code.
            message: Error message.
            correlation_id: Request correlation ID.
            details: Field-level validation errors.
            extra: Additional keys for the client, such as ``creditsRemaining``.

        Returns:
            ErrorResponse instance.
        """
        error: dict[str, Any] = {
            "code": code,
            "message": message,
        }
        if extra:
            error.update({k: v for k, v in extra.items() if k not in ("code", "message")})
        if details:
            error["details"] = [d.model_dump() for d in details]
        error["correlation_id"] = correlation_id

        return cls(error=error)


class ProgressResponse(BaseResponse):
    """Progress snapshot of a production run."""

    stage: str
    progress: int = Field(ge=0, le=100)
    current_task: str = Field(alias="currentTask")
    estimated_time_remaining: int | None = Field(default=None, alias="estimatedTimeRemaining")
    completed_steps: list[str] = Field(default_factory=list, alias="completedSteps")
    errors: list[str] = Field(default_factory=list)
