"""FastAPI dependencies resolving per-app services from application state.

create_app() builds every service once and stores it on app.state; route
handlers only read them.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from sitedrop.config import Settings
from sitedrop.publishing import PublishingFinalizer, UploadAuthorizer
from sitedrop.storage import ObjectStore


def get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_authorizer(request: Request) -> UploadAuthorizer:
    authorizer: UploadAuthorizer = request.app.state.authorizer
    return authorizer


def get_finalizer(request: Request) -> PublishingFinalizer:
    finalizer: PublishingFinalizer = request.app.state.finalizer
    return finalizer


def get_published_store(request: Request) -> ObjectStore:
    store: ObjectStore = request.app.state.published_store
    return store


def get_staging_store(request: Request) -> ObjectStore:
    store: ObjectStore = request.app.state.staging_store
    return store


SettingsDep = Annotated[Settings, Depends(get_settings)]
AuthorizerDep = Annotated[UploadAuthorizer, Depends(get_authorizer)]
FinalizerDep = Annotated[PublishingFinalizer, Depends(get_finalizer)]
PublishedStoreDep = Annotated[ObjectStore, Depends(get_published_store)]
StagingStoreDep = Annotated[ObjectStore, Depends(get_staging_store)]
