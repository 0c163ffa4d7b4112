"""
Bounded retry around single transport attempts.
"""

from .retry_engine import RetryPolicyEngine

__all__ = [
    "RetryPolicyEngine",
]
