import functools
import sys
from typing import Optional

import click

from records_cli.commands.approve.corrections import (
    resolve_request,
    show_pending_requests,
    watch_pending_requests,
)
from records_cli.commands.check.stats import show_stats
from records_cli.commands.export.students import export_students
from records_cli.commands.manage.users import (
    bootstrap_admin,
    change_role,
    register_user,
    show_users,
)
from records_cli.commands.manage.years import (
    add_year,
    remove_year,
    select_year,
    show_active_year,
    show_years,
)
from records_cli.commands.register.student import parse_assignments, register_student
from records_cli.commands.request.correction import show_history, submit_correction
from records_cli.commands.show.students import (
    search_students,
    show_fields,
    show_student,
    show_student_page,
)
from records_cli.commands.update.student import delete_student, update_student
from records_cli.context import Services, build_services
from records_cli.db.config import get_engine, init_db
from records_cli.errors import RecordsError, ValidationError
from records_cli.records import DEFAULT_PAGE_SIZE
from records_cli.utils.logging_config import configure_from_env, get_logger

logger = get_logger(__name__)


class AppState:
    """Lazily built services; tests pass a ready Services object instead."""

    def __init__(self, use_local: bool = True, database_url: Optional[str] = None):
        self.use_local = use_local
        self.database_url = database_url
        self._services: Optional[Services] = None

    def services(self) -> Services:
        if self._services is None:
            engine = get_engine(self.use_local, self.database_url)
            init_db(engine)
            self._services = build_services(engine)
        return self._services


def get_services(ctx: click.Context) -> Services:
    obj = ctx.find_object(Services)
    if obj is not None:
        return obj
    return ctx.find_object(AppState).services()


def handle_errors(func):
    """Print domain errors in red and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            click.secho("Validation failed:", fg="red")
            for field, message in e.errors.items():
                click.secho(f"- {field}: {message}", fg="red")
            sys.exit(1)
        except RecordsError as e:
            logger.info(f"{type(e).__name__}: {e}")
            click.secho(f"Error: {e}", fg="red")
            sys.exit(1)

    return wrapper


@click.group()
@click.option("--prod", is_flag=True, help="Use the production database")
@click.option("--database-url", help="SQLAlchemy URL override")
@click.pass_context
def cli(ctx: click.Context, prod: bool, database_url: Optional[str]) -> None:
    configure_from_env()
    if ctx.obj is None:
        ctx.obj = AppState(use_local=not prod, database_url=database_url)


@cli.command(name="init-db")
@click.pass_context
@handle_errors
def init_database(ctx: click.Context) -> None:
    """Create the database tables."""
    services = get_services(ctx)
    init_db(services.engine)
    click.secho("Database ready", fg="green")


@cli.group()
def auth() -> None:
    """Sign in and out."""
    pass


@auth.command()
@click.option("--uid", required=True, help="User id from the identity provider")
@click.option("--email", help="Email address")
@click.option("--name", "display_name", help="Display name")
@click.pass_context
@handle_errors
def login(ctx: click.Context, uid: str, email: Optional[str], display_name: Optional[str]) -> None:
    services = get_services(ctx)
    identity = services.identity.sign_in(uid, email, display_name)
    role = services.roles.ensure_role(identity)
    click.secho(f"Signed in as {identity.label} ({role})", fg="green")
    if not services.selector.is_ready:
        click.secho("Select an academic year with 'years select YYYY/YYYY'.", fg="yellow")


@auth.command()
@click.pass_context
@handle_errors
def logout(ctx: click.Context) -> None:
    services = get_services(ctx)
    services.identity.sign_out()
    click.echo("Signed out")


@auth.command()
@click.pass_context
@handle_errors
def whoami(ctx: click.Context) -> None:
    services = get_services(ctx)
    identity = services.require_user()
    role = services.roles.get_role(identity.uid)
    click.echo(f"{identity.label} ({identity.uid}) - {role}")


@cli.group()
def users() -> None:
    """Manage user roles (admin only)."""
    pass


@users.command(name="list")
@click.pass_context
@handle_errors
def users_list(ctx: click.Context) -> None:
    show_users(get_services(ctx))


@users.command(name="register")
@click.argument("uid")
@click.argument("email")
@click.pass_context
@handle_errors
def users_register(ctx: click.Context, uid: str, email: str) -> None:
    register_user(get_services(ctx), uid, email)


@users.command(name="set-role")
@click.argument("uid")
@click.argument("role", type=click.Choice(["user", "admin"]))
@click.pass_context
@handle_errors
def users_set_role(ctx: click.Context, uid: str, role: str) -> None:
    change_role(get_services(ctx), uid, role)


@users.command(name="bootstrap")
@click.pass_context
@handle_errors
def users_bootstrap(ctx: click.Context) -> None:
    """Make the signed-in user the first admin."""
    bootstrap_admin(get_services(ctx))


@cli.group()
def years() -> None:
    """Academic years."""
    pass


@years.command(name="list")
@click.pass_context
@handle_errors
def years_list(ctx: click.Context) -> None:
    show_years(get_services(ctx))


@years.command(name="add")
@click.argument("year")
@click.pass_context
@handle_errors
def years_add(ctx: click.Context, year: str) -> None:
    add_year(get_services(ctx), year)


@years.command(name="remove")
@click.argument("year")
@click.pass_context
@handle_errors
def years_remove(ctx: click.Context, year: str) -> None:
    remove_year(get_services(ctx), year)


@years.command(name="select")
@click.argument("year")
@click.pass_context
@handle_errors
def years_select(ctx: click.Context, year: str) -> None:
    select_year(get_services(ctx), year)


@years.command(name="active")
@click.pass_context
@handle_errors
def years_active(ctx: click.Context) -> None:
    show_active_year(get_services(ctx))


@cli.group()
def students() -> None:
    """Student records of the active academic year."""
    pass


@students.command(name="add")
@click.option("--set", "assignments", multiple=True, metavar="FIELD=VALUE", help="Field value, repeatable")
@click.option("--from-file", "file_path", type=click.Path(), help="JSON object with field values")
@click.pass_context
@handle_errors
def students_add(ctx: click.Context, assignments: tuple[str, ...], file_path: Optional[str]) -> None:
    """Register a new student."""
    register_student(get_services(ctx), parse_assignments(assignments), file_path)


@students.command(name="update")
@click.argument("record_id")
@click.option("--set", "assignments", multiple=True, metavar="FIELD=VALUE", help="Field value, repeatable")
@click.pass_context
@handle_errors
def students_update(ctx: click.Context, record_id: str, assignments: tuple[str, ...]) -> None:
    """Edit a student record directly (admin only)."""
    update_student(get_services(ctx), record_id, parse_assignments(assignments))


@students.command(name="delete")
@click.argument("record_id")
@click.confirmation_option(prompt="This permanently deletes the student. Continue?")
@click.pass_context
@handle_errors
def students_delete(ctx: click.Context, record_id: str) -> None:
    delete_student(get_services(ctx), record_id)


@students.command(name="list")
@click.option("--page-size", type=int, default=DEFAULT_PAGE_SIZE, show_default=True)
@click.option("--cursor", help="Page token printed by the previous page")
@click.pass_context
@handle_errors
def students_list(ctx: click.Context, page_size: int, cursor: Optional[str]) -> None:
    show_student_page(get_services(ctx), page_size, cursor)


@students.command(name="show")
@click.argument("record_id")
@click.pass_context
@handle_errors
def students_show(ctx: click.Context, record_id: str) -> None:
    show_student(get_services(ctx), record_id)


@students.command(name="search")
@click.argument("text")
@click.pass_context
@handle_errors
def students_search(ctx: click.Context, text: str) -> None:
    """Search by name or NISN."""
    search_students(get_services(ctx), text)


@students.command(name="fields")
def students_fields() -> None:
    """List the fields of a student record."""
    show_fields()


@cli.group()
def requests() -> None:
    """Correction requests."""
    pass


@requests.command(name="submit")
@click.argument("record_id")
@click.argument("field")
@click.argument("new_value")
@click.option("--reason", required=True, help="Why the correction is needed (min. 10 characters)")
@click.pass_context
@handle_errors
def requests_submit(ctx: click.Context, record_id: str, field: str, new_value: str, reason: str) -> None:
    submit_correction(get_services(ctx), record_id, field, new_value, reason)


@requests.command(name="pending")
@click.pass_context
@handle_errors
def requests_pending(ctx: click.Context) -> None:
    show_pending_requests(get_services(ctx))


@requests.command(name="approve")
@click.argument("request_id")
@click.pass_context
@handle_errors
def requests_approve(ctx: click.Context, request_id: str) -> None:
    resolve_request(get_services(ctx), request_id, "approve")


@requests.command(name="reject")
@click.argument("request_id")
@click.pass_context
@handle_errors
def requests_reject(ctx: click.Context, request_id: str) -> None:
    resolve_request(get_services(ctx), request_id, "reject")


@requests.command(name="history")
@click.argument("record_id")
@click.pass_context
@handle_errors
def requests_history(ctx: click.Context, record_id: str) -> None:
    show_history(get_services(ctx), record_id)


@requests.command(name="watch")
@click.option("--interval", type=float, default=5.0, show_default=True, help="Seconds between checks")
@click.pass_context
@handle_errors
def requests_watch(ctx: click.Context, interval: float) -> None:
    """Keep printing the pending list as it changes."""
    watch_pending_requests(get_services(ctx), interval)


@cli.group()
def export() -> None:
    pass


@export.command(name="students")
@click.option("--output-dir", default="exports", show_default=True)
@click.pass_context
@handle_errors
def export_students_cmd(ctx: click.Context, output_dir: str) -> None:
    """Export the active year's students to Excel."""
    services = get_services(ctx)
    services.require_user()
    export_students(services.records, services.selector.require_active(), output_dir)


@cli.command()
@click.option("--watch", is_flag=True, help="Keep the numbers up to date")
@click.option("--interval", type=float, default=5.0, show_default=True)
@click.pass_context
@handle_errors
def stats(ctx: click.Context, watch: bool, interval: float) -> None:
    """Student and pending-request counts (admin only)."""
    show_stats(get_services(ctx), watch, interval)


if __name__ == "__main__":
    cli()
