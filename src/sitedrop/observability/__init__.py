"""sitedrop observability: OpenTelemetry tracing baseline."""

from sitedrop.observability.tracing import configure_tracing, instrument_fastapi

__all__ = ["configure_tracing", "instrument_fastapi"]
