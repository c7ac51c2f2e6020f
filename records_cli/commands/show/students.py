from typing import List, Optional

import click

from records_cli.context import Services
from records_cli.models import StudentRecord
from records_cli.records import DEFAULT_PAGE_SIZE
from records_cli.student_fields import STUDENT_FIELDS


def _summary_line(record: StudentRecord) -> str:
    nisn = record.nisn or "-"
    kelas = record.class_label or "-"
    return f"{record.id}  {record.full_name:<30} NISN {nisn:<12} Kelas {kelas}"


def _print_records(records: List[StudentRecord]) -> None:
    for record in records:
        click.echo(_summary_line(record))


def show_student_page(
    services: Services, page_size: int = DEFAULT_PAGE_SIZE, cursor: Optional[str] = None
) -> Optional[str]:
    """Print one page of the active year's students and return the next cursor."""
    services.require_user()
    year = services.selector.require_active()

    page = services.records.list_page(year, page_size, cursor)
    if not page.records:
        click.secho(f"No students registered for {year}.", fg="yellow")
        return None

    _print_records(page.records)
    if page.has_more:
        click.echo(f"\nMore students available. Next page: --cursor {page.next_cursor}")
    return page.next_cursor


def show_student(services: Services, record_id: str) -> None:
    services.require_user()
    record = services.records.get(record_id, services.selector.require_active())

    click.secho(f"{record.full_name} ({record.academic_year})", bold=True)
    for definition in STUDENT_FIELDS:
        value = getattr(record, definition.name)
        click.echo(f"{definition.label:<28} {value if value is not None else '-'}")


def search_students(services: Services, text: str) -> None:
    services.require_user()
    year = services.selector.require_active()

    records = services.records.search(year, text)
    if not records:
        click.secho("No students match the search.", fg="yellow")
        return
    _print_records(records)
    click.echo(f"\n{len(records)} student(s) found")


def show_fields() -> None:
    """List the student fields, their rules and suggested values."""
    for definition in STUDENT_FIELDS:
        flags = []
        if definition.required:
            flags.append("required")
        if definition.digits_only:
            flags.append("digits")
        if definition.iso_date:
            flags.append("YYYY-MM-DD")
        line = f"{definition.name:<26} {definition.label:<28} {', '.join(flags)}"
        click.echo(line.rstrip())
        if definition.options:
            click.echo(f"{'':<26} options: {', '.join(definition.options)}")
