"""
Tests for the operator CLI.
"""

import asyncio
import logging

import pytest
from click.testing import CliRunner

from openday.cli import EXIT_ALARMS, cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_log_handlers():
    """The CLI points logging at the runner's captured stdout; undo that afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def cli_args(settings):
    return ["--database-url", settings.DATABASE_URL]


@pytest.mark.asyncio
async def test_summary(runner, cli_args, engine):
    await engine.coordinator.reserve("s1", "simlab", "simlab-1")

    result = await _invoke(runner, cli_args + ["summary"])

    assert result.exit_code == 0, result.output
    assert "simlab:1" in result.output
    line = next(line for line in result.output.splitlines() if line.startswith("simlab:1 "))
    assert line.split()[1:] == ["1", "1"]


@pytest.mark.asyncio
async def test_reconcile_consistent(runner, cli_args, engine):
    result = await _invoke(runner, cli_args + ["reconcile"])

    assert result.exit_code == 0, result.output
    assert "Checked 4 activities" in result.output
    assert "All counters consistent" in result.output


@pytest.mark.asyncio
async def test_reconcile_reports_corrections(runner, cli_args, engine, force_counter):
    await force_counter("chemistry", 3)

    result = await _invoke(runner, cli_args + ["reconcile"])

    assert result.exit_code == 0, result.output
    assert "corrected chemistry: 3 -> 0" in result.output


@pytest.mark.asyncio
async def test_reconcile_alarm_exit_code(runner, cli_args, engine, force_counter):
    await engine.coordinator.reserve("s1", "robotics-2", "robotics-2-1")
    await force_counter("robotics-2", 0)
    await engine.coordinator.reserve("s2", "robotics-2", "robotics-2-1")

    result = await _invoke(runner, cli_args + ["reconcile"])

    assert result.exit_code == EXIT_ALARMS
    assert "ALARM robotics-2" in result.output


async def _invoke(runner, args):
    # The CLI drives its own event loop, so run it off the test loop thread
    return await asyncio.to_thread(runner.invoke, cli, args)
