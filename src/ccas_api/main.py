from textwrap import dedent

import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute
from loguru import logger

from ccas_api.errors import WorkflowError
from ccas_api.errors import handle_broad_exceptions
from ccas_api.errors import handle_pydantic_validation_errors
from ccas_api.errors import handle_workflow_errors
from ccas_api.monitoring.logger import configure_logger
from ccas_api.monitoring.request_context import RequestContextMiddleware
from ccas_api.routes.routes_attachments import ROUTER_ATTACHMENTS
from ccas_api.routes.routes_details import ROUTER_DETAILS
from ccas_api.routes.routes_health import ROUTER_HEALTH
from ccas_api.routes.routes_master import ROUTER_MASTER
from ccas_api.routes.routes_requests import ROUTER_REQUESTS
from ccas_api.routes.routes_users import ROUTER_USERS
from ccas_api.settings import Settings
from ccas_api.workflow import __version__
from ccas_api.workflow.db.pool import DomainDBPool
from ccas_api.workflow.notifications.dispatcher import NotificationDispatcher
from ccas_api.workflow.notifications.notifier import EmailNotifier


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Configuration is loaded directly from environment variables via pydantic-settings.
    - Deployed: set variables in the host's application settings
    - Local development: use a .env file in the repository root
    """
    settings = settings or Settings()

    configure_logger(level=settings.log_level)

    logger.info(
        "Configuration loaded successfully",
        database_configured=bool(settings.domain_db_connection_string),
        email_notifications=settings.smtp_configured,
        request_id_timezone=settings.request_id_timezone,
    )

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description=dedent(
            """
        Approval workflow for **Plant Code** and **Company Code** creation and change requests.

        | Stage | Actor |
        | --- | --- |
        | `pending-secretary` | Secretarial |
        | `pending-siva` / `pending-raghu` / `pending-manoj` | Finance approvers 1-3 |
        | `approved` | IT updates SAP |
        | `sap-updated` | Marked completed |

        Mutating endpoints require the `X-User-Email` and `X-User-Role` headers set by the
        authentication provider.
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
        swagger_ui_parameters={
            "defaultModelsExpandDepth": -1,  # Hide schemas section
            "defaultModelExpandDepth": 1,  # Keep models collapsed if shown
        },
    )
    app.state.settings = settings
    app.state.dispatcher = NotificationDispatcher(None)

    # Add request context middleware for tracking who/where requests come from
    app.add_middleware(RequestContextMiddleware)
    app.include_router(ROUTER_HEALTH, prefix="/api")
    app.include_router(ROUTER_USERS, prefix="/api")
    app.include_router(ROUTER_REQUESTS, prefix="/api")
    app.include_router(ROUTER_DETAILS, prefix="/api")
    app.include_router(ROUTER_ATTACHMENTS, prefix="/api")
    app.include_router(ROUTER_MASTER, prefix="/api")

    if settings.domain_db_connection_string:
        app.state.domain_db_pool = DomainDBPool(
            settings.domain_db_connection_string,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout_seconds,
        )

        @app.on_event("startup")
        async def startup_workflow():
            """Initialize the workflow database and the notifier."""
            await app.state.domain_db_pool.initialize()
            app.state.dispatcher = NotificationDispatcher(EmailNotifier(app.state.domain_db_pool.pool, settings))
            logger.success("Workflow system started", email_notifications=settings.smtp_configured)

        @app.on_event("shutdown")
        async def shutdown_workflow():
            """Flush pending notifications and close workflow database connections."""
            await app.state.dispatcher.drain()
            await app.state.domain_db_pool.close()
            logger.info("Workflow system stopped")

    else:
        app.state.domain_db_pool = None
        logger.warning("domain_db_connection_string not set - data endpoints will answer 503")

    app.add_exception_handler(
        exc_class_or_status_code=WorkflowError,
        handler=handle_workflow_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )

    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
