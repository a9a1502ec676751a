"""FastAPI application - admin legal policy manager."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from policyhub.app.api.routes.health import router as health_router
from policyhub.app.api.routes.metrics import router as metrics_router
from policyhub.app.api.routes.policies import router as policies_router
from policyhub.app.lifecycle.errors import (
    ConflictError,
    IllegalTransitionError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    PolicyError,
    ValidationError,
)

ERROR_STATUS: dict[type[PolicyError], int] = {
    ValidationError: 422,
    IllegalTransitionError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

app = FastAPI(title="PolicyHub Legal Policy API", version="0.1.0")

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(policies_router)


@app.exception_handler(PolicyError)
async def policy_error_handler(request: Request, exc: PolicyError) -> JSONResponse:
    """Render domain errors as {"error": {"kind", "message", "details"}}."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render malformed requests in the same error shape as domain validation."""
    error = ValidationError(
        "Request is malformed",
        errors=[
            {"loc": [str(part) for part in item.get("loc", ())], "msg": item.get("msg", "")}
            for item in exc.errors()
        ],
    )
    return JSONResponse(
        status_code=422, content={"error": error.to_dict()}
    )


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "PolicyHub Legal Policy API", "version": "0.1.0"}
