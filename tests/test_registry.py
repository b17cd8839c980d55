import pytest

# Import the modules so their components are registered
from core import pipeline
from core.collectors import diff_collector, history_collector
from core.contracts.models import TaskKind
from core.prompts import builder
from core.registry import Registry, collector_registry, engine_registry, prompt_registry


def test_registry_get_component():
    """Tests that a component can be retrieved from the registry."""
    collector_class = collector_registry.get("diff")
    assert collector_class is diff_collector.DiffCollector

    engine_class = engine_registry.get("local")
    assert engine_class.__name__ == "LocalFeedbackEngine"


def test_registry_create_component():
    """Tests that a component can be instantiated from the registry."""
    collector = collector_registry.create("history", n=3, skip=1)
    assert isinstance(collector, history_collector.HistoryCollector)

    engine = engine_registry.create("local")
    assert isinstance(engine, pipeline.LocalFeedbackEngine)


def test_every_task_has_a_prompt_builder():
    for task in TaskKind:
        assert task.value in prompt_registry
    assert prompt_registry.get(TaskKind.WEEKLY_SUMMARY.value) is builder.build_summary_prompt
    assert prompt_registry.get(TaskKind.ON_DEMAND_ANALYSIS.value) is builder.build_summary_prompt


def test_registry_get_unregistered_component():
    """Tests that getting an unregistered component raises a KeyError."""
    with pytest.raises(KeyError):
        collector_registry.get("nonexistent")

    with pytest.raises(KeyError):
        engine_registry.get("nonexistent")


def test_registry_register_duplicate_component():
    """Tests that registering a component with a duplicate name raises a ValueError."""
    with pytest.raises(ValueError):
        @collector_registry.register("diff")
        class AnotherDiffCollector:
            pass

    with pytest.raises(ValueError):
        @engine_registry.register("llm")
        class AnotherEngine:
            pass


def test_registry_registers_functions():
    registry = Registry("test")

    @registry.register("double")
    def double(x):
        return x * 2

    assert registry.create("double", 21) == 42


def test_registry_contains_iter_and_keys():
    assert "history" in collector_registry
    assert "nonexistent" not in collector_registry
    assert "last_commit" in list(iter(collector_registry))
    assert set(engine_registry.keys()) >= {"local", "llm"}
