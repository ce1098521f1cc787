"""
Operator commands.

    openday reconcile    recompute participant counters from the ledger
    openday summary      reserved / remaining seats per canonical key
"""

import asyncio
import sys

import click

from openday.core.config import get_settings
from openday.core.logging import setup_logging
from openday.db.session import create_engine, create_session_factory
from openday.services.engine import ReservationEngine, build_engine
from openday.services.strategy_factory import build_cache_backend

EXIT_ALARMS = 2


async def _with_engine(settings, action):
    db_engine = create_engine(settings)
    engine = build_engine(settings, create_session_factory(db_engine), await build_cache_backend(settings))
    try:
        return await action(engine)
    finally:
        await engine.close()
        await db_engine.dispose()


@click.group()
@click.option("--database-url", envvar="DATABASE_URL", help="Async SQLAlchemy URL (defaults to settings)")
@click.pass_context
def cli(ctx, database_url=None):
    """Open day registration tools"""
    settings = get_settings()
    if database_url:
        settings = settings.model_copy(update={"DATABASE_URL": database_url})
    setup_logging(settings)
    ctx.obj = settings


@cli.command("reconcile")
@click.pass_obj
def reconcile(settings):
    """Recompute every participant counter from the reservation ledger"""

    async def run(engine: ReservationEngine):
        return await engine.reconciliation.run()

    report = asyncio.run(_with_engine(settings, run))

    click.echo(f"Checked {report.activities_checked} activities")
    for correction in report.corrections:
        click.echo(f"  corrected {correction.activity_id}: {correction.previous} -> {correction.actual}")
    for alarm in report.alarms:
        click.echo(
            f"  ALARM {alarm.activity_id}: {alarm.counter} booked, capacity {alarm.capacity}",
            err=True,
        )

    if report.alarms:
        sys.exit(EXIT_ALARMS)
    if report.consistent:
        click.echo("All counters consistent")


@cli.command("summary")
@click.pass_obj
def summary(settings):
    """Show reserved and remaining seats per canonical key"""

    async def run(engine: ReservationEngine):
        counts = await engine.availability.get_reservation_counts()
        remaining = await engine.availability.get_all_availability()
        return counts, remaining

    counts, remaining = asyncio.run(_with_engine(settings, run))

    if not remaining:
        click.echo("No activities configured")
        return

    click.echo(f"{'key':<30} {'reserved':>8} {'remaining':>9}")
    for key in sorted(remaining):
        click.echo(f"{str(key):<30} {counts.get(key, 0):>8} {remaining[key]:>9}")
