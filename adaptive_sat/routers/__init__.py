"""API routers for the adaptive SAT core."""

from .exams import router as exams_router

__all__ = [
    "exams_router",
]
