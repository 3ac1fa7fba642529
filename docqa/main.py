from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docqa.api.routes_documents import router as documents_router
from docqa.api.routes_process import router as process_router
from docqa.api.routes_query import router as query_router
from docqa.api.routes_search import router as search_router
from docqa.core.config import Settings, settings as default_settings
from docqa.core.errors import DocQAError
from docqa.core.logging import setup_logging
from docqa.services.container import ServiceContainer


def create_app(settings: Settings | None = None, services: ServiceContainer | None = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container = services or ServiceContainer(settings)
        container.init()
        app.state.services = container
        try:
            yield
        finally:
            await container.close()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    # Allow browser-based UIs to call the API from localhost
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(DocQAError)
    async def docqa_error_handler(request: Request, exc: DocQAError):
        return JSONResponse(status_code=exc.kind.status_code, content={"error": exc.to_dict()})

    app.include_router(documents_router)
    app.include_router(process_router)
    app.include_router(search_router)
    app.include_router(query_router)

    @app.get("/health")
    async def health(request: Request):
        report = await request.app.state.services.health()
        return {"app": settings.APP_NAME, "env": settings.ENV, **report}

    return app


app = create_app()


def run(settings: Settings | None = None) -> None:
    settings = settings or default_settings
    uvicorn.run("docqa.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
