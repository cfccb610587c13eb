from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from linguaflow.api import health, lessons
from linguaflow.core.config import get_settings
from linguaflow.core.errors import PersistenceConflict, PersistenceError, TemplateNotFound

settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Lesson content generation and completion tracking for language tutors",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:3000",  # Next.js dev server
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TemplateNotFound)
async def template_not_found_handler(request: Request, exc: TemplateNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc), "retryable": False})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    status = 409 if isinstance(exc, PersistenceConflict) else 503
    return JSONResponse(status_code=status, content={"detail": str(exc), "retryable": exc.retryable})


# Include routers
app.include_router(health.router)
app.include_router(lessons.router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "docs": "/docs",
        "health": "/health",
    }
