from datetime import datetime, timedelta, timezone

import pytest

from companion_core.agents.companion_agent import CompanionOrchestrator
from companion_core.agents.cooldown import CooldownGate
from companion_core.domain.models import CompletionResult
from companion_core.infrastructure.storage.memory_store import InMemoryCooldownStore, InMemoryMessageStore


class FakeClock:
    def __init__(self, start=None):
        self.current = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self):
        return self.current

    def advance(self, seconds):
        self.current = self.current + timedelta(seconds=seconds)


class FakeProvider:
    """按顺序返回预设结果；元素为异常时抛出。"""

    name = "fake"

    def __init__(self, responses=None, has_key=True):
        self.responses = list(responses or [])
        self.requests = []
        self.has_key = has_key

    def has_credentials(self):
        return self.has_key

    def complete(self, req):
        self.requests.append(req)
        item = self.responses.pop(0) if self.responses else "done"
        if isinstance(item, Exception):
            raise item
        if item is None:
            return CompletionResult(provider="fake", model=req.model, content="", has_content=False)
        return CompletionResult(provider="fake", model=req.model, content=item)


class FakeInstructions:
    def get_instruction(self, kind):
        return f"instruction:{kind.value}"


class FakeScreenshots:
    def __init__(self):
        self.calls = 0

    def capture(self):
        self.calls += 1
        return b"\x89PNG fake"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryMessageStore()


@pytest.fixture
def cooldown_store():
    return InMemoryCooldownStore()


@pytest.fixture
def screenshots():
    return FakeScreenshots()


@pytest.fixture
def make_orchestrator(store, cooldown_store, clock, screenshots):
    def factory(provider):
        gate = CooldownGate(cooldown_store, clock=clock)
        return CompanionOrchestrator(
            store=store,
            gate=gate,
            provider_client=provider,
            instructions=FakeInstructions(),
            screenshots=screenshots,
            clock=clock,
        )

    return factory
