"""
Base classes and interfaces for the database module.

Each store owns one JSON document on disk which is read once at start-up
and rewritten in full after every mutation.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Base exception for database operations."""

    def __init__(self, message: str, original_error: Optional[Exception] = None, **kwargs):
        super().__init__(message)
        self.original_error = original_error
        self.metadata = kwargs


class ReadError(DatabaseError):
    """Raised when a document cannot be read or decoded."""
    pass


class WriteError(DatabaseError):
    """Raised when a document cannot be written."""
    pass


class BaseStore(ABC):
    """Abstract persisted document."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def name(self) -> str:
        return self.path.name

    @abstractmethod
    def load(self) -> Any:
        """Read the document from disk and return its in-memory value."""
        pass

    @abstractmethod
    def save(self) -> bool:
        """
        Persist the in-memory value.

        Returns:
            bool: True if the document was written
        """
        pass
