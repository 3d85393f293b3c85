from .crud import CrudService

__all__ = ["CrudService"]
