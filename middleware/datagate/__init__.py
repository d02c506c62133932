"""
Datagate - data-integration middleware between typed data and external services.

This package moves typed data between an internal canonical representation
and external services reached through pluggable adapters:
- Schemas declare a type's shape and access rules
- Casts coerce raw values into the canonical typed shape and back
- Endpoints pick, deterministically, which configured route handles an action
- The send pipeline composes authorization, casting, mapping, authentication,
  connection reuse and the adapter call into one ordered sequence

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌──────────────────┐
    │   Action    │────▶│ Integration │────▶│     Service      │
    │ (dispatch)  │     │  (routing)  │     │ (endpoint match) │
    └─────────────┘     └─────────────┘     └────────┬─────────┘
                                                     │
                                                     ▼
                        ┌─────────────────────────────────────────┐
                        │  Pipeline: cast ▸ authorize ▸ map ▸     │
                        │  authenticate ▸ connect ▸ send ▸ map ▸  │
                        │  authorize response                     │
                        └────────────────────┬────────────────────┘
                                             │
                                             ▼
                                      ┌─────────────┐
                                      │   Adapter   │
                                      │ (transport) │
                                      └─────────────┘

Invariants:
    - Every cast item carries a string $type
    - Endpoints are sorted by specificity once, at service setup
    - Runtime failures are response statuses, never exceptions
    - Setup-time definition errors are raised immediately

How to change safely:
    - New pipeline stages must keep the request/response bag contract
    - New response statuses must be added to types.Status
    - Adapter and Authenticator protocol changes must stay additive
"""

from ._version import __version__

__all__ = ["__version__"]
