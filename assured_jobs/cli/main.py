"""Assured jobs CLI main entry point."""

import asyncio
import json
import sys
from datetime import datetime
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..core.config import AssuredJobsConfig
from ..core.constants import STATUS_ALIVE
from ..core.exceptions import AssuredJobsError
from ..jobs.tracker import AssuredJobs
from ..utils.logging_config import setup_logging

console = Console()


class CLIContext:
    """Holds the configuration shared by every command."""

    def __init__(self, config: AssuredJobsConfig, clear_unique_locks: bool = False):
        self.config = config
        self.clear_unique_locks = clear_unique_locks

    def build_tracker(self) -> AssuredJobs:
        return AssuredJobs.from_config(
            self.config, redis_unique_locks=self.clear_unique_locks
        )

    def run(self, action):
        """Run ``action(tracker)`` on a fresh event loop and close the tracker."""

        async def runner():
            tracker = self.build_tracker()
            try:
                return await action(tracker)
            finally:
                await tracker.close()

        try:
            return asyncio.run(runner())
        except AssuredJobsError as e:
            click.echo(f"❌ {e}", err=True)
            sys.exit(1)


def format_timestamp(timestamp: Optional[float]) -> str:
    if timestamp is None:
        return "unknown"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def format_duration(seconds: Optional[float]) -> str:
    """Compact duration such as ``45s``, ``12m``, ``3h`` or ``2d``."""
    if seconds is None:
        return "unknown"
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds / 60)}m"
    if seconds < 86400:
        return f"{int(seconds / 3600)}h"
    return f"{int(seconds / 86400)}d"


@click.group()
@click.option("--redis-url", envvar="ASSURED_JOBS_REDIS_URL", help="Redis URL of the shared store")
@click.option("--namespace", "-n", help="Key namespace (default: ASSURED_JOBS_NS or assured_jobs)")
@click.option(
    "--clear-unique-locks",
    is_flag=True,
    envvar="ASSURED_JOBS_CLEAR_UNIQUE_LOCKS",
    help="Delete Redis uniqueness locks (unique_digest) before re-enqueuing",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx,
    redis_url: Optional[str],
    namespace: Optional[str],
    clear_unique_locks: bool,
    verbose: bool,
):
    """Assured Jobs - orphaned job recovery for worker fleets"""
    setup_logging(verbose=verbose, console_output=verbose)

    config = AssuredJobsConfig.from_environment()
    overrides = {}
    if redis_url:
        overrides["redis_url"] = redis_url
    if namespace:
        overrides["namespace"] = namespace
    if overrides:
        config = config.with_overrides(**overrides)

    ctx.obj = CLIContext(config, clear_unique_locks=clear_unique_locks)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON")
@click.pass_obj
def instances(obj: CLIContext, as_json: bool):
    """Show known instances and whether they are alive."""
    statuses = obj.run(lambda tracker: tracker.orphans.get_instances_status())

    if as_json:
        click.echo(json.dumps({k: v.to_dict() for k, v in statuses.items()}, indent=2))
        return

    if not statuses:
        click.echo("No instances found")
        return

    table = Table(title="Instance Status")
    table.add_column("Instance", style="cyan")
    table.add_column("Status")
    table.add_column("Last Heartbeat")
    table.add_column("Orphaned Jobs", justify="right")

    for instance_id, info in sorted(statuses.items()):
        status = (
            "[green]ALIVE[/green]" if info.status == STATUS_ALIVE else "[red]DEAD[/red]"
        )
        table.add_row(
            instance_id,
            status,
            format_timestamp(info.last_heartbeat),
            str(info.orphaned_job_count),
        )

    console.print(table)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON")
@click.pass_obj
def orphans(obj: CLIContext, as_json: bool):
    """List orphaned jobs."""
    jobs = obj.run(lambda tracker: tracker.orphans.get_orphaned_jobs())

    if as_json:
        click.echo(json.dumps([job.to_dict() for job in jobs], indent=2))
        return

    if not jobs:
        click.echo("✅ No orphaned jobs")
        return

    table = Table(title=f"Orphaned Jobs ({len(jobs)})")
    table.add_column("JID", style="cyan")
    table.add_column("Class")
    table.add_column("Queue")
    table.add_column("Instance")
    table.add_column("Orphaned For", justify="right")

    for job in jobs:
        table.add_row(
            job.jid or "",
            job.job_class or "",
            job.queue,
            job.instance_id,
            format_duration(job.orphaned_duration),
        )

    console.print(table)


@cli.command()
@click.argument("jid")
@click.pass_obj
def show(obj: CLIContext, jid: str):
    """Show the full payload of one orphaned job."""
    job = obj.run(lambda tracker: tracker.orphans.get_orphaned_job(jid))

    if job is None:
        click.echo(f"❌ Orphaned job {jid} not found", err=True)
        sys.exit(1)

    console.print_json(json.dumps(job.to_dict()))


@cli.command()
@click.argument("jids", nargs=-1, required=True)
@click.pass_obj
def retry(obj: CLIContext, jids):
    """Re-enqueue orphaned jobs by JID."""
    result = obj.run(lambda tracker: tracker.orphans.bulk_retry_orphaned_jobs(jids))

    if result.success:
        click.echo(f"✅ {result.message}")
    else:
        click.echo(f"❌ {result.error}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("jids", nargs=-1, required=True)
@click.confirmation_option(prompt="Delete these orphaned jobs without running them?")
@click.pass_obj
def delete(obj: CLIContext, jids):
    """Discard orphaned jobs by JID."""
    result = obj.run(lambda tracker: tracker.orphans.bulk_delete_orphaned_jobs(jids))

    if result.success:
        click.echo(f"✅ {result.message}")
    else:
        click.echo(f"❌ {result.error}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_obj
def recover(obj: CLIContext):
    """Run one recovery sweep now (skipped if another instance holds the lock)."""
    report = obj.run(lambda tracker: tracker.reenqueue_orphans())

    if not report.lock_acquired and not report.error:
        click.echo("⏭️  Recovery lock held by another instance, sweep skipped")
        return

    if report.error:
        click.echo(f"❌ Recovery failed: {report.error}", err=True)
        sys.exit(1)

    click.echo(f"✅ Re-enqueued {report.recovered_count} orphaned jobs")
    for jid in report.recovered_jids:
        click.echo(f"  - {jid}")


@cli.command()
@click.pass_obj
def stats(obj: CLIContext):
    """Print orphan statistics as JSON."""
    data = obj.run(lambda tracker: tracker.orphans.get_stats())
    click.echo(json.dumps(data, indent=2))


def main():
    cli()


if __name__ == "__main__":
    main()
