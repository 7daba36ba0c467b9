# category_hierarchy/models/__init__.py
from category_hierarchy.models.category import Category, CategoryStatus, MAX_CATEGORY_DEPTH, ROOT_PATH
from category_hierarchy.models.item import Item, ItemStatus
from category_hierarchy.models.audit_event import AuditEvent, AuditAction

# Export all models that should be created in the database
__all__ = [
    'Category', 'CategoryStatus', 'MAX_CATEGORY_DEPTH', 'ROOT_PATH',
    'Item', 'ItemStatus',
    'AuditEvent', 'AuditAction',
]
