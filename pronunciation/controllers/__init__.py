"""FastAPI routers acting as controllers in the MVC architecture."""

from . import pronunciation

__all__ = ["pronunciation"]
