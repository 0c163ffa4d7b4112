"""
Capability adapters for the request layer.

Each environment dependency (clock, credential storage, network transport,
navigation) is a small protocol with a default implementation, so tests can
substitute any of them independently.
"""

from .clock import Clock, SystemClock
from .navigation import Navigator, InMemoryNavigator
from .storage import CredentialStorage, JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .transport import HttpxTransport, Transport, TransportRequest, TransportResponse

__all__ = [
    "Clock",
    "SystemClock",
    "Navigator",
    "InMemoryNavigator",
    "CredentialStorage",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "HttpxTransport",
    "Transport",
    "TransportRequest",
    "TransportResponse",
]
