"""calfetch CLI - upcoming events from Google Calendar."""

import asyncio
import json
import logging
import sys
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

import click
import requests

from .adapters import FileCredentialStore, GoogleAuthorizer, revoke_token
from .config import Config, JobConfig, load_config
from .exceptions import AuthorizationError, TokenPersistError
from .job import FetchJob
from .registry import JobRegistry
from .scheduler import create_fetch_scheduler


@click.group()
@click.version_option()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """calfetch - periodically fetch upcoming calendar events."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if verbose else logging.INFO,
    )


@main.command()
def auth():
    """Authorize access to Google Calendar."""
    config = load_config()
    authorizer = GoogleAuthorizer(config.client_secret_file, port=config.auth_port, timeout=config.auth_timeout)
    try:
        creds = authorizer.authorize()
        FileCredentialStore(config.token_file).save(creds)
    except (AuthorizationError, TokenPersistError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Authentication successful! Credential stored in {config.token_file}")


@main.command()
def revoke():
    """Revoke the stored credential and delete it."""
    config = load_config()
    store = FileCredentialStore(config.token_file)
    creds = store.load()
    if creds is None:
        click.echo("No stored credential.")
        return

    token = creds.refresh_token or creds.token
    if token:
        try:
            revoke_token(token)
        except (AuthorizationError, requests.RequestException) as e:
            click.echo(f"Warning: {e}", err=True)

    store.clear()
    click.echo("Credential revoked.")


@main.command()
def status():
    """Show credential and calendar configuration."""
    config = load_config()
    client_ok = config.client_secret_file.exists()
    token_ok = config.token_file.exists()

    click.echo(f"Client secret: {config.client_secret_file} ({'found' if client_ok else 'missing'})")
    click.echo(f"Credential:    {config.token_file} ({'found' if token_ok else 'missing'})")
    click.echo(f"Timezone:      {config.timezone}")

    if not config.calendars:
        click.echo("No calendars configured.")
        return

    for job in config.calendars:
        ids = ", ".join(job.calendar_ids)
        click.echo(
            f"  {job.name}: {ids} (every {job.reload_interval_ms // 1000}s, "
            f"max {job.max_entries}, {job.max_window_days} days)"
        )


def _jobs_to_run(config: Config, names: tuple[str, ...]) -> list[JobConfig]:
    jobs = config.calendars or [JobConfig(name="primary")]
    if names:
        jobs = [j for j in jobs if j.name in names]
    return jobs


def _show_events(job: FetchJob, as_json: bool, tz: tzinfo) -> None:
    """Shared event display logic."""
    events = job.events()
    if as_json:
        click.echo(json.dumps({"calendarName": job.name, "events": [e.to_dict() for e in events]}, indent=2))
        return

    click.echo(f"### {job.name}")
    if not events:
        click.echo("  No upcoming events.")
        return

    for event in events:
        start = datetime.fromtimestamp(event.start_ms / 1000, tz)
        when = start.strftime("%a %b %d") + ("  all day" if event.is_full_day else start.strftime("  %H:%M  "))
        click.echo(f"  {when:20} {event.title}")


async def _fetch_once(config: Config, jobs: list[JobConfig]) -> list[FetchJob]:
    fetch_scheduler = create_fetch_scheduler(config)
    fetched = []
    for job_config in jobs:
        job = FetchJob(job_config)
        job.on_error(lambda j, e: click.echo(f"Error ({j.name}): {e}", err=True))
        credentials = await fetch_scheduler.provider.acquire()
        await fetch_scheduler.aggregator.run(job, credentials)
        fetched.append(job)
    return fetched


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--calendar", "names", multiple=True, help="Only fetch this calendar job (repeatable)")
def fetch(as_json: bool, names: tuple[str, ...]):
    """Run one fetch cycle and print the events."""
    config = load_config()
    jobs = _jobs_to_run(config, names)
    if not jobs:
        click.echo("No matching calendars configured.", err=True)
        sys.exit(1)

    try:
        fetched = asyncio.run(_fetch_once(config, jobs))
    except AuthorizationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    tz = ZoneInfo(config.timezone)
    for job in fetched:
        _show_events(job, as_json, tz)


def _print_notification(notification: str, payload: dict) -> None:
    click.echo(json.dumps({"notification": notification, "payload": payload}))


async def _run_forever(config: Config, jobs: list[JobConfig]) -> None:
    fetch_scheduler = create_fetch_scheduler(config)
    registry = JobRegistry(fetch_scheduler, _print_notification)
    fetch_scheduler.start()
    try:
        for job_config in jobs:
            registry.add_calendar(job_config)
        await asyncio.Event().wait()
    finally:
        fetch_scheduler.shutdown()


@main.command()
@click.option("--calendar", "names", multiple=True, help="Only run this calendar job (repeatable)")
def run(names: tuple[str, ...]):
    """Fetch continuously, printing each notification as a JSON line."""
    config = load_config()
    jobs = _jobs_to_run(config, names)
    if not jobs:
        click.echo("No matching calendars configured.", err=True)
        sys.exit(1)

    try:
        asyncio.run(_run_forever(config, jobs))
    except KeyboardInterrupt:
        click.echo("Stopped.", err=True)
