from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from i3f.api.router import router
from i3f.config import settings
from i3f.core.exceptions import register_exception_handlers
from i3f.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level, debug=settings.debug)

    app = FastAPI(title=settings.app_name, debug=settings.debug)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
