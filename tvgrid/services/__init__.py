"""Application services built on the catalog, importers and validator."""

from tvgrid.services.catalog_service import CatalogService, ValidationSupersededError

__all__ = [
    "CatalogService",
    "ValidationSupersededError",
]
