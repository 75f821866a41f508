"""FastAPI application factory."""
from fastapi import FastAPI

from inclinefit.api.routes import analyse, inject


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""
    app = FastAPI(
        title="inclinefit API",
        description="Treadmill FIT incline injection and field-presence analysis",
        version="0.1.0",
    )

    app.include_router(inject.router, tags=["inject"])
    app.include_router(analyse.router, tags=["analyse"])

    return app


# Module-level app instance for uvicorn
app = create_app()
