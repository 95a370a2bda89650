import structlog
from fastapi import APIRouter, Request, Response
from starlette.concurrency import run_in_threadpool

from i3f.config import settings
from i3f.core.exceptions import AppError, InvalidIdentifier
from i3f.schemas.images import ErrorResponse
from i3f.services import image_service, storage

logger = structlog.get_logger()

router = APIRouter(prefix="/iiif")

_ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    501: {"model": ErrorResponse},
}


def _image_path(request: Request) -> str:
    # the decoded path would turn an identifier's %2F into a separator
    raw = request.scope.get("raw_path")
    if not raw:
        return request.url.path.partition(f"{router.prefix}/")[2]
    try:
        path = raw.decode("utf-8", errors="strict")
    except UnicodeDecodeError:
        raise InvalidIdentifier(raw.decode("utf-8", errors="replace")) from None
    return path.partition(f"{router.prefix}/")[2]


@router.get("/{image_path:path}", responses=_ERROR_RESPONSES)
async def get_image(image_path: str, request: Request) -> Response:
    path = _image_path(request)
    try:
        result = await run_in_threadpool(
            image_service.handle_image_path,
            path,
            storage.get_storage(),
            settings.size_limits(),
        )
    except AppError as e:
        logger.info("image_request_failed", path=path, status_code=e.status_code, detail=e.detail)
        raise

    return Response(
        content=result.data,
        media_type=result.content_type,
        headers={"Cache-Control": f"public, max-age={settings.cache_max_age}"},
    )
