"""
Upstream advertising API access.
"""

from adsync.upstream.client import BroadstreetClient
from adsync.upstream.envelope import MalformedResponse, NormalizedList, parse_envelope

__all__ = [
    "BroadstreetClient",
    "NormalizedList",
    "MalformedResponse",
    "parse_envelope",
]
