"""
Datagate Test Suite.

This package contains:
- unit/: Unit tests (pure components and services over fakes)
- integration/: Integration tests (full dispatch over the in-memory adapter)
"""
