"""FastAPI routers acting as controllers in the MVC architecture."""

from . import inference

__all__ = ["inference"]
