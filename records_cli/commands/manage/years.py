import click

from records_cli.context import Services


def show_years(services: Services) -> None:
    years = services.catalog.list_years()
    if not years:
        click.secho("No academic years available. An admin can add one with 'years add'.", fg="yellow")
        return

    active = services.selector.active_year
    for year in years:
        marker = " (active)" if year == active else ""
        click.echo(f"- {year}{marker}")


def add_year(services: Services, year: str) -> None:
    services.require_admin()
    services.catalog.add_year(year)
    click.secho(f"Academic year {year} added", fg="green")


def remove_year(services: Services, year: str) -> None:
    services.require_admin()
    services.catalog.remove_year(year)
    click.secho(f"Academic year {year} removed", fg="green")


def select_year(services: Services, year: str) -> None:
    services.require_user()
    services.selector.set_active(year)
    click.secho(f"Now working on academic year {year}", fg="green")


def show_active_year(services: Services) -> None:
    year = services.selector.active_year
    if year is None:
        click.secho("No academic year selected. Use 'years select YYYY/YYYY'.", fg="yellow")
        return
    click.echo(year)
