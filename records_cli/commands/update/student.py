from typing import Any, Dict

import click

from records_cli.context import Services


def update_student(services: Services, record_id: str, patch: Dict[str, Any]) -> None:
    """Edit a student record of the active year directly (admin only)."""
    services.require_admin()
    year = services.selector.require_active()
    if not patch:
        click.secho("Nothing to update.", fg="yellow")
        return

    record = services.records.update(record_id, patch, year)
    click.secho(f"Updated {record.full_name} ({record.id})", fg="green")
    for name in sorted(patch):
        click.echo(f"- {name}: {getattr(record, name)!r}")


def delete_student(services: Services, record_id: str) -> None:
    """Permanently delete a student record of the active year (admin only)."""
    services.require_admin()
    year = services.selector.require_active()
    record = services.records.get(record_id, year)
    services.records.delete(record_id, year)
    click.secho(f"Deleted {record.full_name} ({record.id})", fg="green")
