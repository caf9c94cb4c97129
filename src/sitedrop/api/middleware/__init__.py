"""sitedrop API middleware package."""

from sitedrop.api.middleware.request_id import RequestIdMiddleware

__all__ = ["RequestIdMiddleware"]
