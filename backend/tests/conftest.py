from __future__ import annotations

import importlib
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for path in (BACKEND_DIR, TESTS_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from healthguard_agent_core import (  # noqa: E402
    AuditTrail,
    ContextAssembler,
    HealthGuardOrchestrator,
    InMemoryAuditSink,
    ToolRegistry,
)
from healthguard_tools import HealthGuardToolset, register_tools  # noqa: E402

FROZEN_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


def frozen_clock() -> datetime:
    return FROZEN_NOW


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def audit(audit_sink) -> AuditTrail:
    return AuditTrail(audit_sink, clock=frozen_clock)


@pytest.fixture
def registry(audit) -> ToolRegistry:
    tools = ToolRegistry()
    register_tools(tools, HealthGuardToolset(audit))
    return tools


@pytest.fixture
def make_orchestrator(registry, audit):
    def _make(client) -> HealthGuardOrchestrator:
        return HealthGuardOrchestrator(
            client=client,
            registry=registry,
            audit=audit,
            assembler=ContextAssembler(clock=frozen_clock),
            clock=frozen_clock,
        )

    return _make


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "healthguard-test.sqlite"
    monkeypatch.setenv("HEALTHGUARD_DB_PATH", str(db_path))
    monkeypatch.setenv("HEALTHGUARD_API_KEY", "test-key")

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def use_model(backend_module, monkeypatch):
    def _install(client):
        monkeypatch.setattr(backend_module, "container", backend_module.HealthGuardApp(model_client=client))
        return backend_module.container

    return _install


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client
