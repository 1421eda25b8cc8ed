from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dictlens.routers import analysis, dictionaries
from dictlens.services.engine import EngineContext


def create_app(engine: Optional[EngineContext] = None) -> FastAPI:
    app = FastAPI(
        title="Dictlens Server",
        description="Links content dictionaries to the source code that declares and reads them.",
        version="1.0.0",
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Editor clients run on arbitrary local origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = engine if engine is not None else EngineContext.for_workspace(Path.cwd())

    app.include_router(analysis.router)
    app.include_router(dictionaries.router)

    @app.get("/api-status")
    async def root():
        return {"message": "Dictlens Server is running. Visit /docs for API documentation."}

    return app


app = create_app()
