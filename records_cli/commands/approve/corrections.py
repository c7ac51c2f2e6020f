import click

from records_cli.commands.request.correction import print_request
from records_cli.context import Services
from records_cli.corrections import Decision


def show_pending_requests(services: Services) -> None:
    services.require_admin()
    requests = services.corrections.list_pending()

    if not requests:
        click.secho("No pending correction requests found.", fg="yellow")
        return

    for i, request in enumerate(requests):
        click.echo()
        click.echo("-" * 30)
        click.echo(f"[{i+1}/{len(requests)}]")
        print_request(request)


def resolve_request(services: Services, request_id: str, decision: Decision) -> None:
    """Approve or reject one pending correction request (admin only)."""
    resolver = services.require_admin()
    request = services.corrections.resolve(request_id, decision, resolver)

    if request.status == "approved":
        click.secho(
            f"Approved: {request.student_name}'s {request.field_to_correct} is now {request.new_value!r}",
            fg="green",
        )
    else:
        click.secho(f"Rejected request {request.id} for {request.student_name}", fg="yellow")


def watch_pending_requests(services: Services, interval: float = 5.0) -> None:
    """Print the pending list again every time it changes, until interrupted."""
    services.require_admin()
    with services.corrections.watch_pending(poll_interval=interval) as live:
        try:
            for requests in live:
                click.echo()
                click.secho(f"{len(requests)} pending correction request(s)", bold=True)
                for request in requests:
                    print_request(request)
        except KeyboardInterrupt:
            click.echo("\nStopped watching correction requests.")
