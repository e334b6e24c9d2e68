from .activity_log import ActivityLog
from .meta import PostMeta, Term, TermMeta
from .product import Product

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ActivityLog',
    'PostMeta',
    'Term',
    'TermMeta',
    'Product',
]
