from .base import DeletedItem, DeletedItemTracker, MetaStore, Storefront

__all__ = [
    'DeletedItem',
    'DeletedItemTracker',
    'MetaStore',
    'Storefront',
]
