import pytest

from cascadeorm.persistence import FLUSH_AUTO, FLUSH_COMMIT, ConfigurationError, UnitOfWorkConfig


def test_defaults():
    config = UnitOfWorkConfig()
    assert config.automatic_dirty_checking is True
    assert config.flush_mode == FLUSH_COMMIT
    assert config.slow_query_ms == 200


def test_invalid_flush_mode_rejected():
    with pytest.raises(ConfigurationError):
        UnitOfWorkConfig(flush_mode="sometimes")


def test_negative_threshold_rejected():
    with pytest.raises(ConfigurationError):
        UnitOfWorkConfig(slow_query_ms=-1)


def test_from_env_reads_prefixed_values():
    config = UnitOfWorkConfig.from_env(
        environ={
            "CASCADEORM_AUTOMATIC_DIRTY_CHECKING": "off",
            "CASCADEORM_FLUSH_MODE": " Auto ",
            "CASCADEORM_SLOW_QUERY_MS": "50",
        }
    )
    assert config.automatic_dirty_checking is False
    assert config.flush_mode == FLUSH_AUTO
    assert config.slow_query_ms == 50


def test_from_env_custom_prefix_and_defaults():
    config = UnitOfWorkConfig.from_env(prefix="APP_", environ={"APP_FLUSH_MODE": "manual"})
    assert config.flush_mode == "manual"
    assert config.automatic_dirty_checking is True


def test_from_env_uses_process_environment(monkeypatch):
    monkeypatch.setenv("CASCADEORM_SLOW_QUERY_MS", "5")
    assert UnitOfWorkConfig.from_env().slow_query_ms == 5


@pytest.mark.parametrize(
    "key, value",
    [
        ("CASCADEORM_AUTOMATIC_DIRTY_CHECKING", "maybe"),
        ("CASCADEORM_SLOW_QUERY_MS", "fast"),
        ("CASCADEORM_FLUSH_MODE", "never"),
    ],
)
def test_from_env_invalid_values(key, value):
    with pytest.raises(ConfigurationError):
        UnitOfWorkConfig.from_env(environ={key: value})
