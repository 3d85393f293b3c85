"""Entities served by the default application."""
from .products import PRODUCT_SCHEMA, PRODUCTS
from .users import USER_SCHEMA, USERS

__all__ = ["PRODUCT_SCHEMA", "PRODUCTS", "USER_SCHEMA", "USERS"]
