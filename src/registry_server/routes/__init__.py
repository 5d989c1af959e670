"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from registry_server.routes.admin import router as admin_router
from registry_server.routes.form_responses import router as form_responses_router
from registry_server.routes.forms import router as forms_router
from registry_server.routes.module_responses import router as module_responses_router
from registry_server.routes.modules import router as modules_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(modules_router, prefix=API_PREFIX)
    app.include_router(module_responses_router, prefix=API_PREFIX)
    app.include_router(form_responses_router, prefix=API_PREFIX)
    app.include_router(forms_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)
