"""API routers, collected for main.py."""

from exam_engine.api.health import router as health_router  # noqa: F401
from exam_engine.api.exams import router as exams_router  # noqa: F401
from exam_engine.api.admin import router as admin_router  # noqa: F401
