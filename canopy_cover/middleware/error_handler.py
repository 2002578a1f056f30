"""
Global error handling middleware.
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable

from canopy_cover.domain.exceptions import CanopyCoverError


logger = logging.getLogger(__name__)


def _request_context(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail},
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Maps domain errors to 422, plain validation errors to 400 and anything
    else to 500, always with an {"error", "detail"} body.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        """
        Process the request and handle any exceptions.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            Response object
        """
        try:
            return await call_next(request)

        except CanopyCoverError as e:
            logger.warning(f"Cover computation error: {e}", extra=_request_context(request))
            return _error_response(
                status.HTTP_422_UNPROCESSABLE_ENTITY,
                "Cover computation error",
                str(e),
            )

        except ValueError as e:
            logger.warning(f"Validation error: {e}", extra=_request_context(request))
            return _error_response(
                status.HTTP_400_BAD_REQUEST,
                "Invalid request",
                str(e),
            )

        except Exception as e:
            logger.exception(f"Unhandled exception: {e}", extra=_request_context(request))
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
                "An unexpected error occurred",
            )
