"""sitedrop FastAPI application factory.

This module provides the create_app() factory for bootstrapping the publishing API.
"""

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from sitedrop import SITEDROP_VERSION
from sitedrop.api.errors import (
    generic_exception_handler,
    http_exception_handler,
    publish_error_handler,
    request_validation_error_handler,
)
from sitedrop.api.middleware.request_id import RequestIdMiddleware
from sitedrop.api.routes.health import router as health_router
from sitedrop.api.routes.serving import router as serving_router
from sitedrop.api.routes.sites import router as sites_router
from sitedrop.api.routes.uploads import router as uploads_router
from sitedrop.config import Settings, load_settings
from sitedrop.observability.tracing import configure_tracing, instrument_fastapi
from sitedrop.publishing import (
    ArchiveExtractor,
    PublishError,
    PublishingFinalizer,
    UploadAuthorizer,
)
from sitedrop.storage import ObjectStore, build_object_stores


def create_app(
    settings: Settings | None = None,
    published_store: ObjectStore | None = None,
    staging_store: ObjectStore | None = None,
) -> FastAPI:
    """Create and configure the sitedrop FastAPI application.

    This factory:
    - Resolves settings from the environment unless given
    - Builds the published and staging object stores unless given
    - Wires the authorizer, extractor and finalizer onto app.state
    - Registers request-id middleware and the error envelope handlers
    - Mounts the health, upload and single-step publish routers
    - Mounts local site serving last, when enabled

    Args:
        settings: Optional Settings for testing. If None, read from SITEDROP_* env.
        published_store: Optional store for published site objects.
        staging_store: Optional store for staged archives.

    Returns:
        Configured FastAPI application instance.
    """
    if settings is None:
        settings = load_settings()

    if published_store is None or staging_store is None:
        default_published, default_staging = build_object_stores(settings)
        published_store = published_store or default_published
        staging_store = staging_store or default_staging

    app = FastAPI(
        title="sitedrop API",
        description="Static-site archive upload and publishing",
        version=SITEDROP_VERSION,
    )

    extractor = ArchiveExtractor(settings, published_store, staging_store)

    app.state.settings = settings
    app.state.published_store = published_store
    app.state.staging_store = staging_store
    app.state.authorizer = UploadAuthorizer(settings, staging_store)
    app.state.extractor = extractor
    app.state.finalizer = PublishingFinalizer(settings, extractor, published_store, staging_store)

    configure_tracing()

    app.add_middleware(RequestIdMiddleware)

    instrument_fastapi(app)

    app.add_exception_handler(PublishError, publish_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(uploads_router)
    app.include_router(sites_router)
    if settings.serve_sites:
        app.include_router(serving_router)

    return app
