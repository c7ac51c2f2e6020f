import click

from records_cli.context import Services


def show_users(services: Services) -> None:
    services.require_admin()
    users = services.roles.list_users()
    if not users:
        click.secho("No users registered.", fg="yellow")
        return

    for user in users:
        click.echo(f"{user.user_id:<24} {user.email or '-':<32} {user.role}")


def register_user(services: Services, uid: str, email: str) -> None:
    actor = services.require_user()
    services.roles.register_user(actor, uid, email)
    click.secho(f"Registered user {email} ({uid})", fg="green")


def change_role(services: Services, uid: str, role: str) -> None:
    actor = services.require_user()
    services.roles.set_role(actor, uid, role)
    click.secho(f"Role of {uid} changed to {role}", fg="green")


def bootstrap_admin(services: Services) -> None:
    identity = services.require_user()
    services.roles.bootstrap_admin(identity)
    click.secho(f"{identity.label} is now an admin", fg="green")
