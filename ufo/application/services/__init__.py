"""
Application Services.
"""

from .uploader import Uploader

__all__ = ["Uploader"]
