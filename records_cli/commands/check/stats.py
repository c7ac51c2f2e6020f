import click

from records_cli.context import Services
from records_cli.db.live import LiveQuery
from records_cli.models import CorrectionRequest, StudentRecord


def show_stats(services: Services, watch: bool = False, interval: float = 5.0) -> None:
    """Dashboard numbers for the active year, optionally kept up to date."""
    services.require_admin()
    year = services.selector.require_active()

    if not watch:
        click.echo(f"Academic year: {year}")
        click.echo(f"- Students: {services.records.count(year)}")
        click.echo(f"- Pending correction requests: {services.corrections.pending_count()}")
        return

    # Pending requests are counted across all years
    live = LiveQuery(
        services.hub,
        [StudentRecord.__tablename__, CorrectionRequest.__tablename__],
        lambda: (services.records.count(year), services.corrections.pending_count()),
        poll_interval=interval,
    )
    with live:
        try:
            for student_count, pending_count in live:
                click.echo(
                    f"[{year}] students: {student_count}, pending requests: {pending_count}"
                )
        except KeyboardInterrupt:
            click.echo("\nStopped watching statistics.")
