"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DashboardError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500, headers: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.headers = headers


class InvalidCurrencyError(DashboardError):
    def __init__(self, value: str):
        super().__init__(
            f"Invalid currency code or pair: {value!r}. Use ISO codes like USD or pairs like USD-BRL",
            status_code=400,
        )


class UnknownCurrencyError(DashboardError):
    def __init__(self, symbols: list[str]):
        super().__init__(f"Unsupported currency pair(s): {', '.join(symbols)}", status_code=400)
        self.symbols = symbols


class InvalidParameterError(DashboardError):
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class AuthenticationError(DashboardError):
    def __init__(self, message: str = "Invalid or missing credentials"):
        super().__init__(message, status_code=401, headers={"WWW-Authenticate": "Bearer"})


class PermissionDeniedError(DashboardError):
    def __init__(self, message: str = "Admin access required"):
        super().__init__(message, status_code=403)


class NotFoundError(DashboardError):
    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class ConflictError(DashboardError):
    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class RateLimitExceededError(DashboardError):
    def __init__(self, retry_after: int):
        super().__init__(
            "Rate limit exceeded. Try again later.",
            status_code=429,
            headers={"Retry-After": str(retry_after)},
        )


class ProviderError(DashboardError):
    """Upstream API failed and no cached value is available."""

    def __init__(self, provider: str, detail: str):
        super().__init__(f"{provider} unavailable: {detail}", status_code=502)
        self.provider = provider


class NotConfiguredError(DashboardError):
    def __init__(self, env_var: str):
        super().__init__(f"Feature unavailable: {env_var} is not configured", status_code=503)


def error_response(exc: DashboardError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code, headers=exc.headers)


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(DashboardError)
    async def handle_dashboard_error(_request: Request, exc: DashboardError):
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_request: Request, exc: RequestValidationError):
        problems = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ()) if part not in ("query", "body"))
            problems.append(f"{location}: {err.get('msg')}" if location else err.get("msg", "invalid"))
        return JSONResponse({"error": "; ".join(problems) or "Invalid request"}, status_code=400)

    @app.exception_handler(ValueError)
    async def handle_value_error(_request: Request, exc: ValueError):
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=500,
        )
