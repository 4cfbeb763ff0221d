"""Routes package for FastAPI endpoints.

This package contains all API route modules for the tracer survey service.
"""

from tracer_survey.routes import admin, health, surveys

__all__ = ["admin", "health", "surveys"]
