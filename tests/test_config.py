import pytest
from pydantic import ValidationError

from ppc_advisor.agent import AgentConfig
from ppc_advisor.config import Settings


def test_defaults():
    s = Settings(_env_file=None)

    assert s.AGENT_MAX_TOOL_CALLS == 5
    assert s.AGENT_TIMEOUT_SECONDS == 30.0
    assert s.PROPOSAL_EXPIRY_HOURS == 72
    assert s.REALLOCATION_CUMULATIVE_LOSS_THRESHOLD_PCT == 40.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("AGENT_MAX_TOOL_CALLS", "3")
    monkeypatch.setenv("AGENT_TIMEOUT_SECONDS", "12.5")

    s = Settings(_env_file=None)

    assert s.AGENT_MAX_TOOL_CALLS == 3
    assert s.AGENT_TIMEOUT_SECONDS == 12.5


def test_non_positive_timeout_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, AGENT_TIMEOUT_SECONDS=0)


def test_zero_tool_call_budget_is_rejected():
    with pytest.raises(ValidationError, match="AGENT_MAX_TOOL_CALLS"):
        Settings(_env_file=None, AGENT_MAX_TOOL_CALLS=0)


@pytest.mark.parametrize("reserve", [2.0, 3.0])
def test_tool_reserve_must_fit_inside_timeout(reserve):
    with pytest.raises(ValidationError, match="AGENT_TOOL_TIME_RESERVE_SECONDS"):
        Settings(_env_file=None, AGENT_TIMEOUT_SECONDS=2.0, AGENT_TOOL_TIME_RESERVE_SECONDS=reserve)


def test_tool_reserve_below_timeout_is_accepted():
    s = Settings(_env_file=None, AGENT_TIMEOUT_SECONDS=2.0, AGENT_TOOL_TIME_RESERVE_SECONDS=0.5)

    assert s.AGENT_TOOL_TIME_RESERVE_SECONDS == 0.5


@pytest.mark.parametrize("kwargs", [
    {"max_tool_calls": 0},
    {"timeout_seconds": 2.0, "tool_time_reserve_seconds": 3.0},
])
def test_agent_config_rejects_unusable_budgets(kwargs):
    with pytest.raises(ValueError):
        AgentConfig(**kwargs)


def test_production_requires_cron_secret():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, ENV="production", CRON_SECRET="")


def test_agent_config_reads_settings(monkeypatch):
    import ppc_advisor.agent.schemas as schemas

    monkeypatch.setattr(
        schemas, "get_settings",
        lambda: Settings(_env_file=None, AGENT_MAX_TOOL_CALLS=2, AGENT_TOOL_TIME_RESERVE_SECONDS=1.0),
    )

    config = AgentConfig.from_settings()

    assert config.max_tool_calls == 2
    assert config.tool_time_reserve_seconds == 1.0
