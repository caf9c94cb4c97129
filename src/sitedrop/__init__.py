"""sitedrop - publish zipped static sites under per-tenant subdomains."""

SITEDROP_VERSION = "1.0"

__all__ = ["SITEDROP_VERSION"]
