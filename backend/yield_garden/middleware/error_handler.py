"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for custom exceptions
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime

from ..transport.types import (
    TransportDisabledError,
    TransportResponseError,
    TransportTimeoutError,
    TransportUnavailableError,
)
from ..utils.exceptions import (
    AgreementNotFoundException,
    BusinessException,
    ConversationNotFoundException,
    InvalidAgentTypeException,
    StoreUnavailableError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _error_body(error: str, message: str, details=None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details,
        "timestamp": datetime.now().isoformat()
    }


async def transport_unavailable_handler(request: Request, exc: Exception):
    """
    Handle transport timeouts, outages and disabled transports.
    
    WHAT: Messaging network cannot be reached
    WHY: Relay may be down or the agent stopped
    HOW: Return 503 service unavailable
    """
    logger.error(f"Transport unavailable: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=_error_body("TRANSPORT_UNAVAILABLE", str(exc), "Messaging transport is not reachable")
    )


async def transport_response_error_handler(request: Request, exc: TransportResponseError):
    """
    Handle TransportResponseError.
    
    WHAT: Relay returned an invalid or error response
    WHY: API contract violation or relay server error
    HOW: Return 502 bad gateway
    """
    logger.error(f"Transport response error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=_error_body("TRANSPORT_BAD_GATEWAY", str(exc), "Messaging relay returned an invalid response")
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.
    
    WHAT: Request validation failed
    WHY: Invalid query or path parameters
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")
    
    # Clean up error details to be JSON serializable
    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": error.get("input")
        }
        if "ctx" in error:
            cleaned_error["ctx"] = {
                k: str(v) if isinstance(v, Exception) else v
                for k, v in error["ctx"].items()
            }
        cleaned_errors.append(cleaned_error)
    
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("VALIDATION_ERROR", "Request validation failed", cleaned_errors)
    )


async def business_exception_handler(request: Request, exc: BusinessException):
    """
    Handle BusinessException and subclasses.
    
    WHAT: Domain-specific error
    WHY: Stores and lookups fail in well-known ways
    HOW: Return status code based on exception type
    """
    status_code = status.HTTP_400_BAD_REQUEST
    
    if isinstance(exc, (ConversationNotFoundException, AgreementNotFoundException)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, StoreUnavailableError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, InvalidAgentTypeException):
        status_code = status.HTTP_400_BAD_REQUEST
    
    if status_code >= 500:
        logger.error(f"Business exception: {exc.code} - {exc.message}")
    else:
        logger.warning(f"Business exception: {exc.code} - {exc.message}")
    
    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, exc.details)
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.
    
    Args:
        app: FastAPI application instance
    """
    # Transport exceptions
    app.add_exception_handler(TransportDisabledError, transport_unavailable_handler)
    app.add_exception_handler(TransportTimeoutError, transport_unavailable_handler)
    app.add_exception_handler(TransportUnavailableError, transport_unavailable_handler)
    app.add_exception_handler(TransportResponseError, transport_response_error_handler)
    
    # API exceptions
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)
    
    logger.info("Exception handlers registered")
