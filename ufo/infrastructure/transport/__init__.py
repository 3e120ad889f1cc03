"""
Transports - ITransport implementations.

Provides:
- HttpxTransport: one HTTP request per unit (httpx)
- InMemoryTransport: keeps bytes in memory
"""

from .httpx_transport import HttpxTransport
from .inmemory_transport import InMemoryTransport

__all__ = [
    "HttpxTransport",
    "InMemoryTransport",
]
