"""
Access evaluation for Datagate.

This package decides who may act on which items:
- authorize_request: request-level decision from the schemas' access schemes
- authorize_items: item-level filtering of data
- authorize_response: item-level filtering of mapped response data
"""

from .items import AuthorizedItems, authorize_item, authorize_items
from .request import authorize_request
from .response import authorize_response
from .scheme import has_identity, is_granted

__all__ = [
    "AuthorizedItems",
    "authorize_item",
    "authorize_items",
    "authorize_request",
    "authorize_response",
    "has_identity",
    "is_granted",
]
