import pytest

from src.task_orchestrator.container import DependencyContainer


@pytest.fixture(autouse=True)
def set_intg_test_env(monkeypatch):
    """Setup environment variables for integration tests - all mocked."""
    monkeypatch.setenv("USE_SQLITE", "true")
    monkeypatch.setenv("USE_MOCK_CLASSIFIER", "true")


@pytest.fixture
def container() -> DependencyContainer:
    """A container with the mock classifier registered."""
    from dev.mocks_clients import MockGroupClassifier

    container = DependencyContainer()
    container.register_group_classifier(MockGroupClassifier())
    return container
