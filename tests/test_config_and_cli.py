"""
Configuration, Logging & Scenario CLI Test Suite

Coverage:
  - TOML loading, env overrides and validation
  - log sanitization and format validation
  - scenario replay (run_scenario) and the fundgov-sim commands
"""

import json
import logging
import os
import sys
import textwrap
import tomllib

import pytest
from click.testing import CliRunner

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from fundgov.cli.simulate import ScenarioError, cli, run_scenario
from fundgov.config import FundGovConfig, GovernanceConfig, LoggingConfig, load_config
from fundgov.constants import LOG_DATE_FORMAT, LOG_FORMAT
from fundgov.logger import LogManager, TerminalSafeFormatter, set_log_level


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

SCENARIO = textwrap.dedent("""
    [governance]
    quorum_fraction = 50
    start_time = 0

    [governance.balances]
    alice = 1
    bob = 1
    carol = 1

    [[steps]]
    action = "register"
    voter = "alice"

    [[steps]]
    action = "register"
    voter = "bob"

    [[steps]]
    action = "register"
    voter = "carol"

    [[steps]]
    action = "propose"
    creator = "alice"
    description = "infra"
    duration = 10

    [[steps]]
    action = "propose"
    creator = "bob"
    description = "docs"
    duration = 10

    [[steps]]
    action = "propose"
    creator = "carol"
    description = "events"
    deadline = 10

    [[steps]]
    action = "vote"
    voter = "alice"
    proposal = 0
    choice = "for"

    [[steps]]
    action = "vote"
    voter = "alice"
    proposal = 0
    choice = "against"
    expect_error = "AlreadyVotedError"

    [[steps]]
    action = "vote"
    voter = "bob"
    proposal = 1
    choice = "for"

    [[steps]]
    action = "vote"
    voter = "carol"
    proposal = 2
    choice = "for"

    [[steps]]
    action = "finalize"
    proposal = 0
    expect_error = "TemporalError"

    [[steps]]
    action = "advance"
    by = 10

    [[steps]]
    action = "finalize"
    proposal = 0

    [[steps]]
    action = "finalize"
    proposal = 1

    [[steps]]
    action = "finalize"
    proposal = 2

    [[steps]]
    action = "allocate"
    budget = 10

    [[steps]]
    action = "queue"
    proposal = 0
""")


@pytest.fixture
def scenario_file(tmp_path):
    path = tmp_path / "scenario.toml"
    path.write_text(SCENARIO)
    return path


@pytest.fixture
def quiet_logs():
    set_log_level("ERROR")
    yield
    set_log_level("INFO")


def parse(text):
    return tomllib.loads(text)


# ══════════════════════════════════════════════════════════════════════
#  CONFIGURATION
# ══════════════════════════════════════════════════════════════════════


class TestConfig:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("FUNDGOV_QUORUM_FRACTION", raising=False)
        cfg = FundGovConfig()
        assert cfg.governance.start_time == 0
        assert cfg.governance.balances == {}
        assert cfg.validate()

    def test_from_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FUNDGOV_QUORUM_FRACTION", raising=False)
        path = tmp_path / "fundgov.toml"
        path.write_text(textwrap.dedent("""
            [governance]
            quorum_fraction = 30
            start_time = 5

            [governance.balances]
            alice = 10

            [logging]
            level = "debug"
        """))
        cfg = FundGovConfig.from_file(str(path))
        assert cfg.governance.quorum_fraction == 30
        assert cfg.governance.start_time == 5
        assert cfg.governance.balances == {"alice": 10}
        assert cfg.logging.level == "DEBUG"

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = FundGovConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg.governance.balances == {}

    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "fundgov.toml"
        path.write_text("[governance]\nquorum_fraction = 30\n")
        monkeypatch.setenv("FUNDGOV_QUORUM_FRACTION", "75")
        monkeypatch.setenv("FUNDGOV_LOG_LEVEL", "warning")
        cfg = FundGovConfig.from_file(str(path))
        assert cfg.governance.quorum_fraction == 75
        assert cfg.logging.level == "WARNING"

    def test_load_config_env_path(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FUNDGOV_QUORUM_FRACTION", raising=False)
        path = tmp_path / "custom.toml"
        path.write_text("[governance]\nquorum_fraction = 10\n")
        monkeypatch.setenv("FUNDGOV_CONFIG", str(path))
        assert load_config().governance.quorum_fraction == 10

    @pytest.mark.parametrize("kwargs", [
        {"quorum_fraction": 101},
        {"quorum_fraction": -1},
        {"quorum_fraction": "50"},
        {"start_time": "now"},
        {"balances": {"alice": -1}},
        {"balances": {"alice": 1.5}},
    ])
    def test_invalid_governance(self, kwargs):
        with pytest.raises(ValueError):
            GovernanceConfig(**kwargs).validate()

    def test_invalid_log_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            LoggingConfig(level="LOUD").validate()

    def test_to_dict(self):
        cfg = FundGovConfig(governance=GovernanceConfig(quorum_fraction=20))
        assert cfg.to_dict()["governance"]["quorum_fraction"] == 20

    def test_load_config_applies_log_level(self, tmp_path, quiet_logs):
        path = tmp_path / "fundgov.toml"
        path.write_text('[logging]\nlevel = "error"\n')
        load_config(str(path))
        assert logging.getLogger().level == logging.ERROR

    def test_load_config_rejects_unknown_level(self, tmp_path):
        path = tmp_path / "fundgov.toml"
        path.write_text('[logging]\nlevel = "loud"\n')
        with pytest.raises(ValueError, match="Invalid log level"):
            load_config(str(path))


# ══════════════════════════════════════════════════════════════════════
#  LOGGING
# ══════════════════════════════════════════════════════════════════════


class TestLogging:

    def test_sanitize_strips_ansi_and_control(self):
        raw = "vote by \x1b[31mmallory\x1b[0m\r\x07done"
        assert TerminalSafeFormatter.sanitize(raw) == "vote by mallorydone"

    def test_sanitize_keeps_newline_and_tab(self):
        assert TerminalSafeFormatter.sanitize("a\tb\nc") == "a\tb\nc"

    def test_log_format_fallback(self):
        assert LogManager.validate_log_format("(asctime)s broken") == str(LOG_FORMAT.default())

    def test_log_format_valid(self):
        fmt = "%(levelname)s %(message)s"
        assert LogManager.validate_log_format(fmt) == fmt

    def test_date_format_fallback(self):
        assert LogManager.validate_date_format("no directives") == str(LOG_DATE_FORMAT.default())

    def test_singleton(self):
        assert LogManager() is LogManager()
        assert LogManager().is_configured


# ══════════════════════════════════════════════════════════════════════
#  SCENARIO REPLAY
# ══════════════════════════════════════════════════════════════════════


class TestRunScenario:

    def test_replay(self):
        governor, sink = run_scenario(parse(SCENARIO))
        assert governor.passing_set() == [0, 1, 2]
        assert governor.allocations() == {0: 3, 1: 3, 2: 3}
        assert governor.allocation.last_round.remainder == 1
        assert [(s.proposal_id, s.share) for s in sink.received] == [(0, 3)]

    def test_on_step_callback(self):
        seen = []
        run_scenario(parse(SCENARIO), on_step=lambda i, step, out: seen.append(step["action"]))
        assert seen.count("register") == 3
        assert seen[-1] == "queue"

    def test_unexpected_error_aborts(self):
        data = parse(SCENARIO)
        data["steps"].append({"action": "queue", "proposal": 9})
        with pytest.raises(ScenarioError, match="UnknownProposalError"):
            run_scenario(data)

    def test_expected_error_not_raised(self):
        data = parse(SCENARIO)
        data["steps"][0]["expect_error"] = "AlreadyRegisteredError"
        with pytest.raises(ScenarioError, match="succeeded but expected"):
            run_scenario(data)

    def test_missing_field(self):
        with pytest.raises(ScenarioError, match="missing 'voter'"):
            run_scenario({"steps": [{"action": "register"}]})

    def test_unknown_action(self):
        with pytest.raises(ScenarioError, match="unknown action"):
            run_scenario({"steps": [{"action": "delegate"}]})

    def test_set_balance_step(self):
        data = {
            "governance": {"quorum_fraction": 0},
            "steps": [
                {"action": "register", "voter": "alice"},
                {"action": "propose", "creator": "alice", "duration": 5},
                {"action": "vote", "voter": "alice", "proposal": 0, "choice": "for",
                 "expect_error": "NoVotingPowerError"},
                {"action": "set_balance", "voter": "alice", "amount": 4},
                {"action": "vote", "voter": "alice", "proposal": 0, "choice": "for"},
            ],
        }
        governor, _ = run_scenario(data)
        assert governor.get_proposal(0).for_votes == 4

    def test_defaults_layered_under_scenario(self):
        defaults = GovernanceConfig(quorum_fraction=100, start_time=3, balances={"alice": 2})
        data = {
            "governance": {"start_time": 5, "balances": {"bob": 1}},
            "steps": [
                {"action": "register", "voter": "alice"},
                {"action": "register", "voter": "bob"},
            ],
        }
        governor, _ = run_scenario(data, defaults=defaults)
        assert governor.finalization.quorum_fraction == 100
        assert governor.clock.now() == 5
        assert governor.voting.oracle.weight_of("alice") == 2
        assert governor.voting.oracle.weight_of("bob") == 1

    def test_mistyped_field_reported_as_step_failure(self):
        data = {
            "steps": [
                {"action": "register", "voter": "alice"},
                {"action": "propose", "creator": "alice", "duration": "soon"},
            ],
        }
        with pytest.raises(ScenarioError, match="Step 1 \\(propose\\) failed: TypeError"):
            run_scenario(data)


# ══════════════════════════════════════════════════════════════════════
#  CLI
# ══════════════════════════════════════════════════════════════════════


class TestCli:

    def test_run_table(self, scenario_file):
        result = CliRunner().invoke(cli, ["run", str(scenario_file)])
        assert result.exit_code == 0, result.output
        assert "Proposals" in result.output
        assert "remainder 1" in result.output

    def test_run_json(self, scenario_file, quiet_logs):
        result = CliRunner().invoke(cli, ["--log-level", "ERROR", "run", str(scenario_file), "--json"])
        assert result.exit_code == 0, result.output
        state = json.loads(result.output)
        assert state["finalization"]["passingSet"] == [0, 1, 2]
        assert state["queued"][0]["share"] == 3

    def test_run_failing_scenario(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('[[steps]]\naction = "register"\nvoter = "a"\n'
                        '[[steps]]\naction = "register"\nvoter = "a"\n')
        result = CliRunner().invoke(cli, ["run", str(path)])
        assert result.exit_code != 0
        assert "AlreadyRegisteredError" in result.output

    def test_run_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[[steps]\n")
        result = CliRunner().invoke(cli, ["run", str(path)])
        assert result.exit_code != 0
        assert "Invalid scenario TOML" in result.output

    def test_check_config_ok(self, tmp_path, quiet_logs):
        path = tmp_path / "fundgov.toml"
        path.write_text("[governance]\nquorum_fraction = 40\n")
        result = CliRunner().invoke(cli, ["check-config", str(path)], env={"FUNDGOV_QUORUM_FRACTION": None})
        assert result.exit_code == 0, result.output
        assert "Configuration OK" in result.output
        assert '"quorum_fraction": 40' in result.output

    def test_check_config_invalid(self, tmp_path):
        path = tmp_path / "fundgov.toml"
        path.write_text("[governance]\nquorum_fraction = 400\n")
        result = CliRunner().invoke(cli, ["check-config", str(path)], env={"FUNDGOV_QUORUM_FRACTION": None})
        assert result.exit_code != 0
        assert "Invalid configuration" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "fundgov-sim" in result.output

    def test_run_with_config_defaults(self, tmp_path, quiet_logs):
        config = tmp_path / "fundgov.toml"
        config.write_text(textwrap.dedent("""
            [governance]
            quorum_fraction = 100

            [governance.balances]
            alice = 1

            [logging]
            level = "ERROR"
        """))
        scenario = tmp_path / "scenario.toml"
        scenario.write_text(textwrap.dedent("""
            [governance.balances]
            bob = 1

            [[steps]]
            action = "register"
            voter = "alice"

            [[steps]]
            action = "register"
            voter = "bob"

            [[steps]]
            action = "propose"
            creator = "alice"
            duration = 10

            [[steps]]
            action = "vote"
            voter = "alice"
            proposal = 0
            choice = "for"

            [[steps]]
            action = "vote"
            voter = "bob"
            proposal = 0
            choice = "for"

            [[steps]]
            action = "advance"
            by = 10

            [[steps]]
            action = "finalize"
            proposal = 0
        """))
        result = CliRunner().invoke(
            cli, ["run", str(scenario), "--config", str(config), "--json"],
            env={"FUNDGOV_QUORUM_FRACTION": None, "FUNDGOV_LOG_LEVEL": None},
        )
        assert result.exit_code == 0, result.output
        state = json.loads(result.output)
        assert state["finalization"]["quorumFraction"] == 100
        assert state["finalization"]["passingSet"] == [0]
        assert state["ledger"]["proposals"][0]["forVotes"] == 2
        assert logging.getLogger().level == logging.ERROR

    def test_run_missing_config_file(self, scenario_file, tmp_path):
        result = CliRunner().invoke(
            cli, ["run", str(scenario_file), "--config", str(tmp_path / "absent.toml")]
        )
        assert result.exit_code == 2

    def test_check_config_applies_level(self, tmp_path, quiet_logs):
        path = tmp_path / "fundgov.toml"
        path.write_text('[logging]\nlevel = "WARNING"\n')
        result = CliRunner().invoke(cli, ["check-config", str(path)], env={"FUNDGOV_LOG_LEVEL": None})
        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.WARNING

    def test_log_level_flag_wins_over_config(self, tmp_path, quiet_logs):
        path = tmp_path / "fundgov.toml"
        path.write_text('[logging]\nlevel = "WARNING"\n')
        result = CliRunner().invoke(
            cli, ["--log-level", "ERROR", "check-config", str(path)],
            env={"FUNDGOV_LOG_LEVEL": None},
        )
        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.ERROR

    def test_run_mistyped_step(self, tmp_path):
        path = tmp_path / "typo.toml"
        path.write_text('[[steps]]\naction = "register"\nvoter = "a"\n'
                        '[[steps]]\naction = "propose"\ncreator = "a"\nduration = "x"\n')
        result = CliRunner().invoke(cli, ["run", str(path)])
        assert result.exit_code == 1
        assert "TypeError" in result.output
