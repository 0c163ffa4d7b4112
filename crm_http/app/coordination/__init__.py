"""
Deduplication of concurrent identical requests.
"""

from .request_coordinator import RequestCoordinator, decode_payload

__all__ = [
    "RequestCoordinator",
    "decode_payload",
]
