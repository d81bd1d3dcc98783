"""Document loader implementations."""
from .text_loader import TextLoader, FILE_TYPES

__all__ = ["TextLoader", "FILE_TYPES"]
