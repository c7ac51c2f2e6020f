from datetime import datetime
from typing import List

import click

from records_cli.context import Services
from records_cli.models import CorrectionRequest
from records_cli.student_fields import field_label


def format_request_date(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000).strftime("%d-%m-%Y %H:%M")


def print_request(request: CorrectionRequest) -> None:
    click.echo(
        f"[{request.id}] {request.student_name} - {field_label(request.field_to_correct)}"
    )
    click.echo(f"  {request.old_value if request.old_value is not None else '-'} -> {request.new_value}")
    click.echo(f"  Reason: {request.notes}")
    click.echo(
        f"  Requested by {request.requested_by_user_name} on {format_request_date(request.request_date)}"
    )


def submit_correction(
    services: Services, record_id: str, field: str, new_value: str, notes: str
) -> str:
    """File a correction request for admin review."""
    requester = services.require_user()
    year = services.selector.require_active()
    request_id = services.corrections.submit(
        record_id, field, new_value, notes, requester, year=year
    )
    request = services.corrections.get(request_id)

    click.secho(f"Correction request {request_id} submitted for review", fg="green")
    print_request(request)
    return request_id


def show_history(services: Services, record_id: str) -> None:
    services.require_user()
    services.records.get(record_id, services.selector.require_active())
    requests: List[CorrectionRequest] = services.corrections.history(record_id)
    if not requests:
        click.secho("No correction requests for this student.", fg="yellow")
        return

    for request in requests:
        print_request(request)
        click.echo(f"  Status: {request.status}")
