"""
Services, endpoints and the send pipeline.

This package provides:
- Service / ServiceDef: a configured external service
- Endpoint / EndpointDef: a configured route with match criteria
- Adapter / Authenticator: protocols for external collaborators
- compare_endpoints / sort_endpoints / match_endpoint: endpoint selection
- Exchange and the pipeline stages
"""

from .cache import Slot
from .endpoint import Endpoint, EndpointDef
from .filters import compile_filters, validate
from .match import MatchObject, compare_endpoints, is_match, match_endpoint, scope_of, sort_endpoints
from .protocols import Adapter, Authenticator, Connection
from .service import AuthDef, Service, ServiceDef
from .stages import SEND_STAGES, Exchange, run_stages

__all__ = [
    "Adapter",
    "AuthDef",
    "Authenticator",
    "compare_endpoints",
    "compile_filters",
    "Connection",
    "Endpoint",
    "EndpointDef",
    "Exchange",
    "is_match",
    "match_endpoint",
    "MatchObject",
    "run_stages",
    "scope_of",
    "SEND_STAGES",
    "Service",
    "ServiceDef",
    "Slot",
    "sort_endpoints",
    "validate",
]
