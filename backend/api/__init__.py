from .builder import ApiBuilder, EntityDefinition
from .controller import CrudController, success_envelope
from .docs import create_docs_router
from .router import PaginationParams, create_crud_router

__all__ = [
    "ApiBuilder",
    "EntityDefinition",
    "CrudController",
    "success_envelope",
    "create_docs_router",
    "PaginationParams",
    "create_crud_router",
]
