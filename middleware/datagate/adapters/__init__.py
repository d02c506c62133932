"""
Adapters bundled with Datagate.

- InMemoryAdapter: in-memory collections for testing and development
"""

from .memory import InMemoryAdapter

__all__ = ["InMemoryAdapter"]
