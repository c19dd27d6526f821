"""Map service results to HTTP status codes and the JSON envelope."""

from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse

from app.services.results import ErrorKind, ServiceResult

STATUS_BY_KIND = {
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.ACCOUNT_DISABLED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VALIDATION_FAILURE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def result_response(result: ServiceResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Render a ServiceResult; failures take the status mapped from their kind."""
    if result.success:
        return JSONResponse(status_code=success_status, content=result.to_envelope())
    code = STATUS_BY_KIND.get(result.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=code, content=result.to_envelope())


def validation_error_body(errors: list[dict[str, Any]]) -> dict[str, Any]:
    """Group pydantic error messages by field name, like {"email": ["..."]}."""
    grouped: dict[str, list[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        grouped.setdefault(field, []).append(err.get("msg", "Invalid value"))
    return ServiceResult.fail(
        ErrorKind.VALIDATION_FAILURE, "Validation failed", grouped
    ).to_envelope()
