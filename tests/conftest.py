import asyncio
from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from pluploader.assembler import UploadAssembler, UploadPart, default_response
from pluploader.errors import ErrorChannel, UploadError
from pluploader.models import UploadTable

class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)

class FakeFile:
    """Stands in for an uploaded temp file; optionally waits on an event before returning."""

    def __init__(self, data: bytes, gate: Optional[asyncio.Event] = None):
        self.data = data
        self.gate = gate

    async def read(self) -> bytes:
        if self.gate is not None:
            await self.gate.wait()
        return self.data

class FailingFile:
    async def read(self) -> bytes:
        raise OSError("temp file vanished")

async def fake_detector(data: bytes) -> str:
    return "text/plain"

async def failing_detector(data: bytes) -> str:
    raise RuntimeError("magic database unavailable")

def make_part(name: str, data: bytes, chunk: int = 0, chunks: int = 1, file=None) -> UploadPart:
    return UploadPart(name=name, chunk=chunk, chunks=chunks, file=file or FakeFile(data))

class Recorder:
    """Collects callback results."""

    def __init__(self):
        self.results: List = []

    def __call__(self, result, request):
        self.results.append(result)
        return default_response(result, request)

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def table(clock) -> UploadTable:
    return UploadTable(clock=clock)

@pytest.fixture
def published() -> List[UploadError]:
    return []

@pytest.fixture
def errors(published) -> ErrorChannel:
    channel = ErrorChannel()
    channel.subscribe(published.append)
    return channel

@pytest.fixture
def assembler(table, errors) -> UploadAssembler:
    return UploadAssembler(table, upload_limit=1, detector=fake_detector, errors=errors)
