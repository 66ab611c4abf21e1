import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from a11y_api.platform.response import api_response


class ScanError(Exception):
    """Base class for failures raised by the scan pipeline."""


class BrowserUnavailableError(ScanError):
    """The shared browser could not be launched or connected to."""


class EngineContractError(ScanError):
    """A rule engine returned data outside its documented contract."""


class ScanNotFoundError(ScanError):
    def __init__(self, scan_id: int):
        self.scan_id = scan_id
        super().__init__(f"Scan with ID {scan_id} not found")


class ScanExecutionError(ScanError):
    """Wraps an engine failure while keeping the original cause on __cause__."""


def add_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(message=str(exc.detail) or "Error", status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(ScanNotFoundError)
    async def scan_not_found_handler(request: Request, exc: ScanNotFoundError):
        return api_response(message=str(exc), status_code=status.HTTP_404_NOT_FOUND)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
