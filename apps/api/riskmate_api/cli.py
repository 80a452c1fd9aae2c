"""CLI commands for the RiskMate ledger."""

import json
import sys

import click

from riskmate_api.celery_client import enqueue_chain_verification
from riskmate_api.db.seed import generate_sample_events
from riskmate_api.db.session import SessionLocal
from riskmate_api.errors import LedgerEventNotFound
from riskmate_api.ledger.roots import LedgerRootService
from riskmate_api.ledger.verifier import LedgerVerifier


@click.group()
def cli():
    """RiskMate ledger CLI."""
    pass


@cli.command("verify-chain")
@click.argument("organization_id")
@click.option("--queue", is_flag=True, help="Hand the walk to the worker instead of running it here.")
def verify_chain(organization_id: str, queue: bool):
    """Replay an organization's hash chain."""
    if queue:
        result = enqueue_chain_verification(organization_id)
        click.echo(f"Queued chain verification: {result.id}")
        return

    db = SessionLocal()
    try:
        status = LedgerVerifier(db).verify_chain(organization_id)
    finally:
        db.close()
    click.echo(json.dumps(status.model_dump(mode="json", by_alias=True), indent=2))
    if status.status == "error":
        sys.exit(1)


@cli.command("verify-event")
@click.argument("organization_id")
@click.argument("event_id")
@click.option("--max-depth", type=int, default=None, help="Ancestor links to walk; 0 walks to the first event.")
def verify_event(organization_id: str, event_id: str, max_depth):
    """Spot check a single ledger event."""
    db = SessionLocal()
    try:
        result = LedgerVerifier(db).verify_event(organization_id, event_id, max_depth=max_depth)
    except LedgerEventNotFound as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(2)
    finally:
        db.close()
    click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
    if not (result.hash_matches and result.chain_ok):
        sys.exit(1)


@cli.command("generate-sample-events")
@click.argument("organization_id")
@click.option("--count", default=1, show_default=True, help="Rounds of three sample events.")
@click.option("--actor-id", default=None, help="Actor recorded on the sample events.")
def generate_sample_events_command(organization_id: str, count: int, actor_id):
    """Record sample governance, operations and access events."""
    db = SessionLocal()
    try:
        event_ids = generate_sample_events(db, organization_id, actor_id=actor_id, rounds=count)
    finally:
        db.close()
    click.echo(f"✓ Recorded {len(event_ids)} sample events.")


@cli.command("compute-ledger-roots")
@click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="UTC day to digest; defaults to yesterday.")
def compute_ledger_roots(day):
    """Compute daily ledger roots for every organization."""
    db = SessionLocal()
    try:
        summary = LedgerRootService(db).compute_daily_roots(day.date() if day else None)
    finally:
        db.close()
    click.echo(f"✓ {summary['roots_computed']} ledger roots computed for {summary['date']}.")
    if summary["failed"]:
        sys.exit(1)


if __name__ == "__main__":
    cli()
