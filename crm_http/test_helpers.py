"""
Test doubles and data factories for the request layer.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Union

from crm_common.config import ApiSettings
from .app.adapters.storage import CredentialStorage, MemoryKeyValueStore
from .app.adapters.transport import TransportRequest, TransportResponse

ScriptItem = Union[TransportResponse, BaseException]


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self._now = start
        self._monotonic = 1000.0

    def now(self) -> float:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float) -> None:
        self._now += seconds
        self._monotonic += seconds


class WallClockOnly:
    """Clock without a monotonic source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += seconds


class ScriptedTransport:
    """Transport replaying a script of responses or exceptions.

    The last item repeats once the script runs out. When ``gate`` is given,
    every send waits for it before answering.
    """

    def __init__(self, script: Sequence[ScriptItem], gate: Optional[asyncio.Event] = None):
        if not script:
            raise ValueError("script must contain at least one item")
        self._script: List[ScriptItem] = list(script)
        self.gate = gate
        self.requests: List[TransportRequest] = []

    async def send(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)

        item = self._script.pop(0) if len(self._script) > 1 else self._script[0]
        if isinstance(item, BaseException):
            raise item
        return item


def json_response(status_code: int, body: Any) -> TransportResponse:
    return TransportResponse(
        status_code=status_code,
        headers={"Content-Type": "application/json; charset=utf-8"},
        content=json.dumps(body).encode("utf-8"),
    )


def text_response(status_code: int, body: str) -> TransportResponse:
    return TransportResponse(
        status_code=status_code,
        headers={"Content-Type": "text/plain"},
        content=body.encode("utf-8"),
    )


def make_settings(**overrides: Any) -> ApiSettings:
    """Settings isolated from the process environment's .env file."""
    values: Dict[str, Any] = {"api_base_url": "https://crm.test/api"}
    values.update(overrides)
    return ApiSettings(_env_file=None, **values)


def make_storage(durable: Optional[Dict[str, str]] = None,
                 session: Optional[Dict[str, str]] = None) -> CredentialStorage:
    return CredentialStorage(
        durable=MemoryKeyValueStore(durable),
        session=MemoryKeyValueStore(session),
    )


class TestDataFactory:
    """Factory for CRM payloads."""

    __test__ = False

    @staticmethod
    def create_leads() -> List[Dict[str, Any]]:
        return [
            {"id": "l1", "name": "Asha Verma", "status": "new", "projectId": "p1"},
            {"id": "l2", "name": "Rohan Mehta", "status": "contacted", "projectId": "p1"},
        ]

    @staticmethod
    def create_booking() -> Dict[str, Any]:
        return {"id": "b1", "unitId": "u-1204", "leadId": "l1", "amount": 2500000}

    @staticmethod
    def envelope(data: Any = None, success: bool = True, message: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": success}
        if data is not None:
            body["data"] = data
        if message is not None:
            body["message"] = message
        return body
