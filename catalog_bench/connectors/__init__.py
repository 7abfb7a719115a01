"""
Catalog connectors.
"""

from .sigv4 import AwsSigV4Auth
from .rest_catalog import (
    CatalogClient,
    CatalogError,
    CatalogHTTPError,
    CatalogTransportError,
    RestCatalogClient,
    set_properties_request,
)

__all__ = [
    "AwsSigV4Auth",
    "CatalogClient",
    "CatalogError",
    "CatalogHTTPError",
    "CatalogTransportError",
    "RestCatalogClient",
    "set_properties_request",
]
