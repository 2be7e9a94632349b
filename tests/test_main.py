from types import SimpleNamespace

import pytest

from app import main
from app.ai_feature.orchestrator import Orchestrator
from app.ai_feature.service import build_orchestrator
from app.api.endpoints.messages import get_orchestrator
from fakes import FakeExecutor, ScriptedModel


@pytest.mark.asyncio
async def test_lifespan_builds_one_orchestrator_and_closes_it(monkeypatch):
    model, executor = ScriptedModel(), FakeExecutor()
    builds = []

    def fake_build():
        builds.append(1)
        return Orchestrator(model, executor)

    monkeypatch.setattr(main, "run_migrations", lambda: None)
    monkeypatch.setattr(main, "build_orchestrator", fake_build)

    async with main.lifespan(main.app):
        request = SimpleNamespace(app=main.app)
        first = get_orchestrator(request)
        second = get_orchestrator(request)
        assert first is second
        assert len(builds) == 1

    assert executor.disposed is True
    assert model.closed is True


@pytest.mark.asyncio
async def test_build_orchestrator_reads_settings(monkeypatch):
    monkeypatch.setattr(main.settings, "MAX_TOOL_ITERATIONS", 3)
    monkeypatch.setattr(main.settings, "SQL_ALLOWED_TABLES", ["reps"])

    orchestrator = build_orchestrator()
    try:
        assert orchestrator.max_tool_iterations == 3
        assert orchestrator.allowed_tables == ["reps"]
    finally:
        await orchestrator.executor.dispose()
        await orchestrator.model.close()
