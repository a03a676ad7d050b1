import os
import pathlib
import sys
import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import registry`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


ADMIN = "did:key:admin"
ALICE = "did:key:alice"
BOB = "did:key:bob"
MALLORY = "did:key:mallory"


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless REGISTRY_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('REGISTRY_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set REGISTRY_RUN_SLOW=1 to enable'))


@pytest.fixture(autouse=True)
def _clean_registry_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("REGISTRY_") and name != "REGISTRY_RUN_SLOW":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def registry():
    from registry.registry import AssetRegistry
    return AssetRegistry(ADMIN)


@pytest.fixture
def owned_by_alice(registry):
    """Registry holding asset 1 (value 10) owned by ALICE."""
    asset_id = registry.create_single(ADMIN, 10)
    registry.transfer(ALICE, asset_id, ADMIN, ALICE)
    return registry, asset_id
