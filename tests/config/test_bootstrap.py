"""Starting the kernel from a loaded configuration."""

import logging
from io import StringIO
from uuid import uuid4

import pytest

from inventory_kernel.config import (
    ENV_DATABASE_URL,
    ENV_LOG_LEVEL,
    get_active_config,
    load_config,
)
from inventory_kernel.db.engine import drop_tables, get_engine, reset_engine
from inventory_kernel.domain.authorization import RoleBasedAuthorization, StaticActorDirectory
from inventory_kernel.domain.roles import Role
from inventory_kernel.logging_config import configure_logging, reset_logging
from inventory_kernel.services import build_orchestrator


@pytest.fixture
def kernel_env(tmp_path):
    """Environment pointing at a fresh SQLite file; restores engine and logging."""
    url = f"sqlite:///{tmp_path / 'bootstrap.db'}"
    reset_logging()
    yield {ENV_DATABASE_URL: url, ENV_LOG_LEVEL: "error"}
    try:
        drop_tables(get_engine())
    except RuntimeError:
        pass
    reset_engine()
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


@pytest.fixture
def directory():
    directory = StaticActorDirectory()
    directory.add(uuid4(), Role.STOCK_KEEPER)
    return directory


class TestBuildOrchestrator:

    def test_environment_overrides_reach_engine_and_logging(self, kernel_env, directory):
        config = load_config(environ=kernel_env)

        build_orchestrator(config, RoleBasedAuthorization(directory), directory)

        assert str(get_engine().url) == kernel_env[ENV_DATABASE_URL]
        assert logging.getLogger("inventory_kernel").level == logging.ERROR
        assert get_active_config() is config

    def test_built_orchestrator_serves_requests(self, kernel_env, directory):
        keeper = directory.default_actor_for(Role.STOCK_KEEPER)
        orchestrator = build_orchestrator(
            load_config(environ=kernel_env),
            RoleBasedAuthorization(directory),
            directory,
            create_schema=True,
        )

        item = orchestrator.register_stock_item(keeper, "Ibuprofen 200mg", 12)
        orchestrator.transfer_stock(item.item_id, None, keeper, 5, keeper)

        assert orchestrator.get_balance(item.item_id, keeper) == 5
        assert orchestrator.verify_conservation(item.item_id) == 12

    def test_second_start_is_rejected(self, kernel_env, directory):
        config = load_config(environ=kernel_env)
        build_orchestrator(config, RoleBasedAuthorization(directory), directory)

        with pytest.raises(RuntimeError):
            build_orchestrator(config, RoleBasedAuthorization(directory), directory)
