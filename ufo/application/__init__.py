"""
UFO Application Layer.

Uploader service and factories.
"""

from .services import Uploader
from .factories import UploaderFactory

__all__ = [
    "Uploader",
    "UploaderFactory",
]
