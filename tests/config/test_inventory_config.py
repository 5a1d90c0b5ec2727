"""Configuration loading, validation and lifecycle."""

import pytest
import yaml

from inventory_kernel.config import (
    ENV_DATABASE_URL,
    ENV_LOG_LEVEL,
    InventoryConfig,
    apply_env_overrides,
    configure,
    config_from_dict,
    get_active_config,
    load_config,
    reset_config,
)


class TestDefaults:

    def test_defaults(self):
        config = InventoryConfig()
        assert config.max_attempts == 3
        assert config.lock_timeout_seconds == 5.0
        assert config.require_final_assignee_on_create is True
        assert config.prune_zero_allocations is True

    @pytest.mark.parametrize("field,value", [
        ("lock_timeout_seconds", 0),
        ("max_attempts", 0),
        ("backoff_base_seconds", -1),
        ("log_level", "CHATTY"),
    ])
    def test_rejects_out_of_range_values(self, field, value):
        with pytest.raises(ValueError):
            InventoryConfig(**{field: value})

    def test_backoff_is_exponential_and_capped(self):
        config = InventoryConfig(backoff_base_seconds=0.1, backoff_max_seconds=0.3)
        assert [config.backoff_for(n) for n in (1, 2, 3)] == [0.1, 0.2, 0.3]

    def test_frozen(self):
        with pytest.raises(Exception):
            InventoryConfig().max_attempts = 9


class TestLoading:

    def test_yaml_with_inventory_section(self, tmp_path):
        path = tmp_path / "inventory.yaml"
        path.write_text(yaml.safe_dump({
            "inventory": {"database_url": "sqlite:///x.db", "max_attempts": 5},
        }))
        config = load_config(path, environ={})
        assert config.database_url == "sqlite:///x.db"
        assert config.max_attempts == 5

    def test_yaml_at_top_level(self, tmp_path):
        path = tmp_path / "inventory.yaml"
        path.write_text("lock_timeout_seconds: 1.5\n")
        assert load_config(path, environ={}).lock_timeout_seconds == 1.5

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "inventory.yaml"
        path.write_text("")
        assert load_config(path, environ={}) == InventoryConfig()

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            config_from_dict({"max_attempts": 2, "colour": "blue"})

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "inventory.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_config(path, environ={})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", environ={})

    def test_environment_overrides(self):
        config = apply_env_overrides(
            InventoryConfig(),
            {ENV_DATABASE_URL: "postgresql://u@h/db", ENV_LOG_LEVEL: "debug"},
        )
        assert config.database_url == "postgresql://u@h/db"
        assert config.log_level == "DEBUG"

    def test_no_overrides_returns_same_object(self):
        config = InventoryConfig()
        assert apply_env_overrides(config, {}) is config


class TestLifecycle:

    def test_not_installed(self):
        with pytest.raises(RuntimeError):
            get_active_config()

    def test_install_once(self):
        config = InventoryConfig(max_attempts=4)
        configure(config)
        assert get_active_config() is config
        with pytest.raises(RuntimeError):
            configure(InventoryConfig())

    def test_reset(self):
        configure(InventoryConfig())
        reset_config()
        with pytest.raises(RuntimeError):
            get_active_config()


def test_example_file_loads():
    from pathlib import Path

    example = Path(__file__).resolve().parents[2] / "inventory.example.yaml"
    config = load_config(example, environ={})
    assert config.database_url.startswith("postgresql://")
    assert config.max_attempts == 3
