"""Read-only catalog lookups."""

from .exceptions import CatalogItemNotFound
from .models import CatalogItem


def resolve_catalog_item(catalog_item_id, using='default'):
    """Return the CatalogItem or raise CatalogItemNotFound."""
    try:
        return CatalogItem.objects.using(using).get(pk=int(catalog_item_id))
    except (CatalogItem.DoesNotExist, TypeError, ValueError):
        raise CatalogItemNotFound(
            message=f'Catalog item {catalog_item_id} not found',
            detail={'catalog_item_id': catalog_item_id},
        )
