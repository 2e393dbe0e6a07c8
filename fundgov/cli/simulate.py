#!/usr/bin/env python3
"""
fundgov Scenario CLI

Replays a governance scenario against a fresh BudgetGovernor driven by a
logical clock and prints the resulting proposals and allocations.

Usage:
    fundgov-sim run <scenario.toml> [--config <fundgov.toml>] [--json]
    fundgov-sim check-config [<fundgov.toml>]

Scenario format (keys under [governance] override the --config file):

    [governance]
    quorum_fraction = 50
    start_time = 0

    [governance.balances]
    alice = 100

    [[steps]]
    action = "register"          # register | set_balance | propose | vote
    voter = "alice"              # advance | finalize | allocate | queue

    [[steps]]
    action = "vote"
    voter = "alice"
    proposal = 0
    choice = "for"
    expect_error = "AlreadyVotedError"   # optional
"""

import json
import tomllib
from typing import Any, Callable, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..config import FundGovConfig, GovernanceConfig, load_config
from ..exceptions import FundGovException
from ..governance import BudgetGovernor, RecordingSink, StaticWeightOracle
from ..logger import get_logger, set_log_level

logger = get_logger(__name__)


class ScenarioError(FundGovException):
    """Malformed scenario or a step that did not behave as declared."""


# ══════════════════════════════════════════════════════════════════════
#  SCENARIO EXECUTION
# ══════════════════════════════════════════════════════════════════════

def load_scenario(path: str) -> Dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _require(step: Dict[str, Any], key: str, index: int) -> Any:
    if key not in step:
        raise ScenarioError(f"Step {index} ({step.get('action')}) is missing '{key}'")
    return step[key]


def _apply_step(
    governor: BudgetGovernor,
    oracle: StaticWeightOracle,
    step: Dict[str, Any],
    index: int,
) -> Any:
    action = _require(step, "action", index)

    if action == "register":
        return governor.register(_require(step, "voter", index))
    if action == "set_balance":
        return oracle.set_balance(
            _require(step, "voter", index), _require(step, "amount", index)
        )
    if action == "propose":
        if "deadline" in step:
            deadline = step["deadline"]
        else:
            deadline = governor.clock.now() + _require(step, "duration", index)
        return governor.create_proposal(
            _require(step, "creator", index), step.get("description", ""), deadline
        )
    if action == "vote":
        return governor.vote(
            _require(step, "voter", index),
            _require(step, "proposal", index),
            _require(step, "choice", index),
        )
    if action == "advance":
        if "to" in step:
            return governor.clock.set(step["to"])
        return governor.clock.advance(_require(step, "by", index))
    if action == "finalize":
        return governor.finalize(_require(step, "proposal", index))
    if action == "allocate":
        return governor.allocate(_require(step, "budget", index))
    if action == "queue":
        return governor.queue(_require(step, "proposal", index))

    raise ScenarioError(f"Step {index}: unknown action '{action}'")


def _matches(error: Exception, expected: str) -> bool:
    """True if *expected* names the error class or one of its bases."""
    return any(cls.__name__ == expected for cls in type(error).__mro__)


def _governance_config(
    section: Dict[str, Any], defaults: Optional[GovernanceConfig]
) -> GovernanceConfig:
    """Scenario [governance] keys layered over *defaults*; balances are merged."""
    if defaults is None:
        return GovernanceConfig.from_dict(section)
    merged = {
        "quorum_fraction": defaults.quorum_fraction,
        "start_time": defaults.start_time,
        **section,
        "balances": {**defaults.balances, **section.get("balances", {})},
    }
    return GovernanceConfig.from_dict(merged)


def run_scenario(
    data: Dict[str, Any],
    on_step: Optional[Callable[[int, Dict[str, Any], Any], None]] = None,
    defaults: Optional[GovernanceConfig] = None,
) -> Tuple[BudgetGovernor, RecordingSink]:
    """
    Replay *data* (a parsed scenario) and return the governor and the sink
    that received every queued allocation.

    *defaults* supplies governance settings the scenario does not set.
    """
    config = _governance_config(data.get("governance", {}), defaults)
    config.validate()

    oracle = StaticWeightOracle(config.balances)
    sink = RecordingSink()
    governor = BudgetGovernor.from_config(config, oracle=oracle, sinks=[sink])

    steps: List[Dict[str, Any]] = data.get("steps", [])
    for index, step in enumerate(steps):
        expected = step.get("expect_error")
        try:
            outcome = _apply_step(governor, oracle, step, index)
        except ScenarioError:
            raise
        except (FundGovException, ValueError, TypeError) as e:
            if expected and _matches(e, expected):
                logger.info(f"Step {index} ({step['action']}): expected {type(e).__name__}")
                if on_step:
                    on_step(index, step, e)
                continue
            raise ScenarioError(
                f"Step {index} ({step.get('action')}) failed: {type(e).__name__}: {e}"
            ) from e

        if expected:
            raise ScenarioError(
                f"Step {index} ({step['action']}) succeeded but expected {expected}"
            )
        if on_step:
            on_step(index, step, outcome)

    return governor, sink


# ══════════════════════════════════════════════════════════════════════
#  RENDERING
# ══════════════════════════════════════════════════════════════════════

def _proposal_table(governor: BudgetGovernor) -> Table:
    table = Table(title="Proposals")
    for column in ("id", "proposer", "description", "deadline",
                   "for", "against", "abstain", "status", "allocation"):
        table.add_column(column)

    for pid in range(governor.proposal_count()):
        p = governor.get_proposal(pid)
        table.add_row(
            str(p.id),
            p.proposer,
            p.description,
            str(p.deadline),
            str(p.for_votes),
            str(p.against_votes),
            str(p.abstain_votes),
            governor.status_of(pid).name,
            str(governor.allocation_of(pid)),
        )
    return table


def _queue_table(sink: RecordingSink) -> Table:
    table = Table(title="Queued allocations")
    table.add_column("proposal")
    table.add_column("share")
    table.add_column("at")
    for signal in sink.received:
        table.add_row(str(signal.proposal_id), str(signal.share), str(signal.at))
    return table


# ══════════════════════════════════════════════════════════════════════
#  COMMANDS
# ══════════════════════════════════════════════════════════════════════

def _load_config(ctx: click.Context, path: Optional[str]) -> FundGovConfig:
    """Load and validate configuration; ``--log-level`` wins over [logging]."""
    try:
        cfg = load_config(path)
        cfg.validate()
    except (ValueError, tomllib.TOMLDecodeError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    if ctx.obj.get("log_level"):
        set_log_level(ctx.obj["log_level"])
    return cfg


@click.group()
@click.version_option(version=__version__, prog_name="fundgov-sim")
@click.option("--log-level", default=None, help="Override the log level (DEBUG, INFO, ...)")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]):
    """fundgov - weighted-vote budget governance simulator."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    if log_level:
        set_log_level(log_level)


@cli.command("run")
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_file", default=None,
              type=click.Path(exists=True, dir_okay=False),
              help="fundgov.toml supplying governance defaults and the log level")
@click.option("--json", "as_json", is_flag=True, help="Print the final state as JSON")
@click.pass_context
def run_cmd(ctx: click.Context, scenario: str, config_file: Optional[str], as_json: bool):
    """Replay SCENARIO and print the resulting state."""
    defaults = _load_config(ctx, config_file).governance if config_file else None

    try:
        data = load_scenario(scenario)
    except tomllib.TOMLDecodeError as e:
        raise click.ClickException(f"Invalid scenario TOML: {e}")

    try:
        governor, sink = run_scenario(data, defaults=defaults)
    except (ScenarioError, ValueError) as e:
        raise click.ClickException(str(e))

    if as_json:
        state = governor.snapshot()
        state["queued"] = [s.to_dict() for s in sink.received]
        click.echo(json.dumps(state, indent=2, default=str))
        return

    console = Console()
    console.print(_proposal_table(governor))
    round_ = governor.allocation.last_round
    if round_ is not None:
        console.print(
            f"Budget {round_.total_budget}: distributed {round_.distributed}, "
            f"remainder {round_.remainder}"
        )
    if len(sink):
        console.print(_queue_table(sink))


@cli.command("check-config")
@click.argument("config_file", required=False, type=click.Path(dir_okay=False))
@click.pass_context
def check_config_cmd(ctx: click.Context, config_file: Optional[str]):
    """Load and validate CONFIG_FILE (default: fundgov.toml)."""
    cfg = _load_config(ctx, config_file)
    click.echo(json.dumps(cfg.to_dict(), indent=2))
    click.echo(click.style("Configuration OK", fg="green"))


if __name__ == "__main__":
    cli()
