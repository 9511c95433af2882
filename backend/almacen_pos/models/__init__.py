from .stores import Store
from .auth import Profile, UserRole, ROLE_NAMES, DEFAULT_ROLE, cast_to_user_role
from .inventory import Category, Unit, Product, InventoryLevel, Movement, MOVEMENT_TYPES
from .sales import Sale, SaleDetail

__all__ = [
    'Store',
    'Profile', 'UserRole', 'ROLE_NAMES', 'DEFAULT_ROLE', 'cast_to_user_role',
    'Category', 'Unit', 'Product', 'InventoryLevel', 'Movement', 'MOVEMENT_TYPES',
    'Sale', 'SaleDetail',
]
