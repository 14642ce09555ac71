"""PRFlow — API error envelope helpers."""
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

from prflow.core.exceptions import ConflictError, PRFlowError


def error_response(code: str, message: str, field_errors: list[dict] | None = None, meta: dict | None = None) -> dict:
    return {
        "data": None,
        "error": {
            "code": code,
            "message": message,
            "field_errors": field_errors or []
        },
        "meta": meta
    }


async def prflow_error_handler(request: Request, exc: PRFlowError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.field_errors),
    )


async def stale_data_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    err = ConflictError("The request was modified by someone else. Reload and try again.")
    return await prflow_error_handler(request, err)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=error_response("VALIDATION_ERROR", "Invalid request payload", field_errors),
    )
