import logging

from fastapi import FastAPI

from agency_crm.config import settings
from agency_crm.errors import CrmError, crm_error_handler
from agency_crm.routes.analytics import router as analytics_router
from agency_crm.routes.auth import router as auth_router
from agency_crm.routes.campaigns import router as campaigns_router
from agency_crm.routes.clients import router as clients_router
from agency_crm.routes.expenses import router as expenses_router
from agency_crm.routes.health import router as health_router
from agency_crm.routes.invoices import router as invoices_router
from agency_crm.routes.notifications import router as notifications_router
from agency_crm.routes.tasks import router as tasks_router
from agency_crm.routes.users import router as users_router

def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="agency-crm-api", version="0.1.0")
    app.add_exception_handler(CrmError, crm_error_handler)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(clients_router)
    app.include_router(campaigns_router)
    app.include_router(tasks_router)
    app.include_router(invoices_router)
    app.include_router(expenses_router)
    app.include_router(notifications_router)
    app.include_router(analytics_router)

    logging.getLogger("agency-crm").info("app created (env=%s)", settings.app_env)
    return app

app = create_app()
