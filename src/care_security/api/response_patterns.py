"""API response patterns mapping Result[T, E] onto HTTP semantics."""

from typing import Any, TypeVar, Union

from beartype import beartype
from fastapi import Response
from pydantic import BaseModel, ConfigDict, Field

from ..core.result_types import Result

T = TypeVar("T")


@beartype
class ErrorResponse(BaseModel):
    """Standardized error response for business logic failures."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    success: bool = Field(default=False, description="Always false for error responses")
    error: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(default=None, description="Machine-readable error code")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")


class APIResponseHandler:
    """Converts service results into HTTP responses."""

    @staticmethod
    @beartype
    def map_error_to_status(error: str) -> int:
        """Map business logic errors to HTTP status codes.

        Args:
            error: Business logic error message

        Returns:
            HTTP status code following RESTful conventions
        """
        error_lower = error.lower()

        # Resource not found
        if any(phrase in error_lower for phrase in ["not found", "does not exist"]):
            return 404

        # Validation failures
        if any(phrase in error_lower for phrase in ["validation", "invalid", "malformed"]):
            return 400

        # Conflict states
        if any(
            phrase in error_lower
            for phrase in ["already exists", "already approved", "already resolved", "conflict"]
        ):
            return 409

        # Default to 422 for business logic errors
        return 422

    @staticmethod
    @beartype
    def from_result(
        result: Result[T, str],
        response: Response,
        success_status: int = 200,
    ) -> Union[T, ErrorResponse]:
        """Convert Result[T, E] to an HTTP response with the proper status code.

        Args:
            result: Service layer Result
            response: FastAPI Response object to set status code
            success_status: HTTP status for successful operations (default 200)

        Returns:
            Either the unwrapped success value or ErrorResponse
        """
        if result.is_err():
            error_msg = result.unwrap_err()
            response.status_code = APIResponseHandler.map_error_to_status(error_msg)
            return ErrorResponse(error=error_msg)

        response.status_code = success_status
        return result.unwrap()


@beartype
def handle_result(
    result: Result[T, str],
    response: Response,
    success_status: int = 200,
) -> Union[T, ErrorResponse]:
    """Convenience function for standard result handling."""
    return APIResponseHandler.from_result(result, response, success_status)


@beartype
class DeletedResponse(BaseModel):
    """Acknowledgement of a successful delete."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    deleted: bool = True
