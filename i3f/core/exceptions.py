from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class BadRequestError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=400, detail=detail)


class _InvalidValueError(BadRequestError):
    label = "value"

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid {self.label}: {value}")
        self.value = value


class InvalidRegionFormat(_InvalidValueError):
    label = "region format"


class InvalidSizeFormat(_InvalidValueError):
    label = "size format"


class InvalidRotationFormat(_InvalidValueError):
    label = "rotation format"


class InvalidQualityFormat(_InvalidValueError):
    label = "quality format"


class InvalidFormat(_InvalidValueError):
    label = "format"


class InvalidIdentifier(_InvalidValueError):
    label = "identifier"


class InvalidIIIFUrl(BadRequestError):
    pass


class NotFoundError(AppError):
    def __init__(self, detail: str = "Image not found") -> None:
        super().__init__(status_code=404, detail=detail)


class FeatureNotImplementedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(status_code=501, detail=detail)


class InternalServerError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(status_code=500, detail=detail)


class DecodeError(InternalServerError):
    pass


class StorageError(InternalServerError):
    pass


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": e["loc"], "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
    return JSONResponse(status_code=422, content={"detail": errors})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
