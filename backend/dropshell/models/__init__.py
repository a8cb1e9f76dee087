"""Import all models so SQLAlchemy metadata knows about them."""
from dropshell.models.base import Base
from dropshell.models.stored_file import StoredFile

__all__ = ["Base", "StoredFile"]
