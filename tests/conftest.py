"""Shared fixtures for userforge tests."""

import pytest

from userforge.metadata.assembler import SchemaAssembler
from userforge.users import UserRegistry

BACKENDS = ["database", "file", "yaml"]


@pytest.fixture(autouse=True)
def _no_validation_bypass(monkeypatch):
    """Tests never inherit the bypass from the developer's shell."""
    monkeypatch.delenv("USERS_SKIP_VALIDATION", raising=False)


@pytest.fixture
def full_schema():
    """Schema with every standard field and no customization."""
    return SchemaAssembler().assemble()


@pytest.fixture(params=BACKENDS)
def backend(request):
    return request.param


@pytest.fixture
def make_registry(tmp_path):
    """Set up a store in a fresh directory and load it.

    Registries are closed at teardown.
    """
    opened = []

    def _make(backend="yaml", **config):
        config.setdefault("storage_dir", str(tmp_path / "users"))
        config["backend"] = backend
        result = UserRegistry.setup(config)
        assert result.success, result.message
        registry = UserRegistry.load(result.config_file)
        opened.append(registry)
        return registry

    yield _make

    for registry in opened:
        registry.close()
