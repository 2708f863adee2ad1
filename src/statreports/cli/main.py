import asyncio
import csv
import logging
from pathlib import Path
from typing import List

import typer
from tortoise import Tortoise
from tortoise.exceptions import IntegrityError

from statreports.core.config import DATABASE_URL, MODEL_MODULES
from statreports.features.auth.models import ReportAccess, User as AuthUser
from statreports.features.auth import service as auth_service
from statreports.features.auth.security import get_password_hash
from statreports.features.catalog.models import Product
from statreports.features.catalog.service import SeriesImportError, import_series_rows

logger = logging.getLogger(__name__)

TORTOISE_ORM_CONFIG = {
    "connections": {"default": DATABASE_URL},
    "apps": {
        "models": {
            "models": MODEL_MODULES,
            "default_connection": "default",
        }
    },
}

app = typer.Typer(name="statreports", help="CLI for managing statreports users and series data.")


# Shared async context manager for database connection
class DBConnection:
    async def __aenter__(self):
        await Tortoise.init(config=TORTOISE_ORM_CONFIG)
        await Tortoise.generate_schemas(safe=True)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await Tortoise.close_connections()


async def _get_user_or_exit(username: str) -> AuthUser:
    user = await AuthUser.get_or_none(username=username)
    if not user:
        typer.secho(f"Error: User with username '{username}' not found.", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return user


# User management commands
user_app = typer.Typer(name="users", help="Manage user accounts and report subscriptions.")
app.add_typer(user_app)

@user_app.command("create-user")
def create_user_command(
    username: str = typer.Option(..., prompt=True, help="Username for the new user."),
    email: str = typer.Option(..., prompt=True, help="Email for the new user."),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password for the new user."),
    admin: bool = typer.Option(False, "--admin", help="Create the user with the admin role."),
):
    """Creates a new subscriber, or an admin with --admin."""
    asyncio.run(_create_user(username, email, password, admin))

async def _create_user(username: str, email: str, password: str, admin: bool):
    async with DBConnection():
        if await AuthUser.filter(username=username).exists():
            typer.secho(f"Error: User with username '{username}' already exists.", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        if await AuthUser.filter(email=email).exists():
            typer.secho(f"Error: User with email '{email}' already exists.", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        try:
            user = await auth_service.create_user(
                {"username": username, "email": email, "role": "admin" if admin else "subscriber"},
                get_password_hash(password),
            )
        except IntegrityError as e:
            typer.secho(f"Error creating user: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        typer.secho(f"User '{user.username}' ({user.role}) created with ID: {user.public_id}", fg=typer.colors.GREEN)

@user_app.command("grant-access")
def grant_access_command(
    username: str = typer.Argument(..., help="The user to update."),
    access: ReportAccess = typer.Argument(..., help="Report package to grant."),
    revoke: bool = typer.Option(False, "--revoke", help="Revoke the package instead of granting it."),
):
    """Grants (or revokes) a report subscription package."""
    asyncio.run(_grant_access(username, access, revoke))

async def _grant_access(username: str, access: ReportAccess, revoke: bool):
    async with DBConnection():
        user = await _get_user_or_exit(username)
        setattr(user, access.value, not revoke)
        await user.save()
        verb = "revoked from" if revoke else "granted to"
        typer.secho(f"'{access.value}' {verb} '{username}'.", fg=typer.colors.GREEN)

@user_app.command("authorize-products")
def authorize_products_command(
    username: str = typer.Argument(..., help="The user to update."),
    products: List[str] = typer.Argument(..., help="Product names to authorize."),
    replace: bool = typer.Option(False, "--replace", help="Replace the current product list instead of extending it."),
):
    """Adds products to a user's subscription."""
    asyncio.run(_authorize_products(username, products, replace))

async def _authorize_products(username: str, product_names: List[str], replace: bool):
    async with DBConnection():
        user = await _get_user_or_exit(username)
        found = await Product.filter(name__in=product_names)
        missing = set(product_names) - {p.name for p in found}
        if missing:
            typer.secho(f"Error: Unknown product(s): {', '.join(sorted(missing))}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        if replace:
            await user.authorized_products.clear()
        await user.authorized_products.add(*found)
        typer.secho(f"'{username}' is now authorized for {len(found)} more product(s).", fg=typer.colors.GREEN)


# Series data commands
series_app = typer.Typer(name="series", help="Load quarterly series data.")
app.add_typer(series_app)

@series_app.command("import")
def import_series_command(
    csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="CSV file with series rows."),
):
    """
    Imports series rows from a CSV file.

    Expected header: dataset,year,quarter,amount,product,company,company_location,country
    """
    asyncio.run(_import_series(csv_path))

async def _import_series(csv_path: Path):
    with csv_path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    async with DBConnection():
        try:
            created = await import_series_rows(rows)
        except SeriesImportError as e:
            typer.secho(f"Import aborted, nothing was written: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
    typer.secho(f"Imported {created} series record(s) from {csv_path.name}.", fg=typer.colors.GREEN)


@app.command("test-db-connection")
def test_db_connection_command_sync():
    """Tests the database connection and counts users."""
    asyncio.run(test_db_connection_command())

async def test_db_connection_command():
    async with DBConnection():
        typer.echo("Successfully connected to the database.")
        user_count = await AuthUser.all().count()
        typer.echo(f"Found {user_count} user(s) in the database.")


if __name__ == "__main__":
    app()
