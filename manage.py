#!/usr/bin/env python3
"""
Management script for the crop brokerage backend.

Usage (via API):
    python manage.py users load [-f data/seed.yaml] [--base-url http://localhost:8000]

Usage (direct DB access):
    python manage.py db init
    python manage.py db users load [-f data/seed.yaml]
    python manage.py db users show
    python manage.py db clear
    python manage.py db status
    python manage.py trades expire
"""

import asyncio
from pathlib import Path

import click
import httpx
import yaml
from sqlalchemy import func, select

from cropbroker.database import AsyncSessionLocal, Base, engine
from cropbroker.models import Buyer, Invoice, Log, Order, PurchaseOrder, Trade, User, UserRole
from cropbroker.repositories import Repositories
from cropbroker.services import broker as broker_service
from cropbroker.services.accounts import hash_password
from cropbroker.utils import new_id, normalize_phone


DEFAULT_BASE_URL = "http://localhost:8000"


def _read_seed(filepath: Path) -> list[dict]:
    """Read the ``users`` list from a YAML seed file."""
    with open(filepath) as f:
        data = yaml.safe_load(f) or {}
    return data.get("users", [])


# ============================================================================
# Direct database operations (internal)
# ============================================================================


async def _init_db():
    """Initialize the database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _clear_db():
    """Drop and recreate all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def _db_load_users(filepath: Path):
    """Load users from a YAML file directly to DB.

    Users with a password can log in; those without (typically suppliers)
    only interact over WhatsApp.
    """
    users_data = _read_seed(filepath)

    async with AsyncSessionLocal() as session:
        repos = Repositories.for_session(session)
        loaded = 0
        skipped = 0

        for data in users_data:
            label = data.get("email") or data.get("phone")
            if data.get("email") and await repos.users.get_by_email(data["email"]):
                skipped += 1
                click.echo(f"  Skipped {label} (already exists)")
                continue
            if not data.get("email") and await repos.users.get_by_phone(data.get("phone", "")):
                skipped += 1
                click.echo(f"  Skipped {label} (already exists)")
                continue

            password = data.get("password")
            user = User(
                id=new_id(),
                email=data.get("email"),
                password_hash=hash_password(password) if password else None,
                role=UserRole(data["role"]),
                firm_name=data.get("firm_name"),
                phone=normalize_phone(data.get("phone")),
                address=data.get("address"),
                pan_number=data.get("pan_number"),
                aadhar_number=data.get("aadhar_number"),
                upi_id=data.get("upi_id"),
                bank_info=data.get("bank_info"),
            )
            repos.users.add(user)
            loaded += 1
            click.echo(f"  Loaded {user.role.value}: {user.firm_name or label}")

        await repos.commit()

    return loaded, skipped


async def _db_show_users():
    """Show all users from DB."""
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).order_by(User.role, User.firm_name))
        return list(result.scalars().all())


async def _count_records():
    """Count records in each table."""
    async with AsyncSessionLocal() as session:
        counts = {}
        for model, name in [
            (User, "users"),
            (Trade, "trades"),
            (Order, "orders"),
            (Buyer, "buyers"),
            (PurchaseOrder, "purchase_orders"),
            (Invoice, "invoices"),
            (Log, "logs"),
        ]:
            result = await session.execute(select(func.count()).select_from(model))
            counts[name] = result.scalar_one()
        return counts


async def _expire_trades():
    async with AsyncSessionLocal() as session:
        repos = Repositories.for_session(session)
        return await broker_service.expire_trades(repos)


# ============================================================================
# API operations
# ============================================================================


def _api_load_users(filepath: Path, base_url: str):
    """Register users with a password via the API."""
    users_data = [u for u in _read_seed(filepath) if u.get("email") and u.get("password")]

    loaded = 0
    skipped = 0
    errors = 0

    with httpx.Client(base_url=base_url, timeout=30) as client:
        for data in users_data:
            response = client.post("/auth/register", json=data)

            if response.status_code == 201:
                loaded += 1
                click.echo(f"  Registered {data['role']}: {data['email']}")
            elif response.status_code == 409:
                skipped += 1
                click.echo(f"  Skipped {data['email']} (already exists)")
            else:
                errors += 1
                error_detail = response.json().get("detail", response.text)
                click.echo(f"  Error {data['email']}: {error_detail}", err=True)

    return loaded, skipped, errors


# ============================================================================
# CLI: Main group
# ============================================================================


@click.group()
def cli():
    """Crop brokerage management commands."""
    pass


# ============================================================================
# CLI: users (via API)
# ============================================================================


@cli.group()
def users():
    """Manage users (via API)."""
    pass


@users.command("load")
@click.option(
    "--file", "-f",
    default="data/seed.yaml",
    type=click.Path(exists=True),
    help="YAML file with user data",
)
@click.option(
    "--base-url", "-u",
    default=DEFAULT_BASE_URL,
    help=f"API base URL (default: {DEFAULT_BASE_URL})",
)
def users_load(file, base_url):
    """Register the users that have a password via the API."""
    click.echo(f"Registering users from {file} via {base_url}...")

    try:
        loaded, skipped, errors = _api_load_users(Path(file), base_url)
        click.echo(f"\nDone: {loaded} registered, {skipped} skipped, {errors} errors")
    except httpx.ConnectError:
        click.echo(f"\nError: Could not connect to {base_url}", err=True)
        click.echo("Is the server running? Start it with: uvicorn cropbroker.main:app", err=True)
        raise SystemExit(1)


# ============================================================================
# CLI: trades
# ============================================================================


@cli.group()
def trades():
    """Trade maintenance."""
    pass


@trades.command("expire")
def trades_expire():
    """Expire open trades whose validity has passed."""

    async def run():
        await _init_db()
        return await _expire_trades()

    expired = asyncio.run(run())
    for trade in expired:
        click.echo(f"  Expired {trade.id}: {trade.crop} (valid till {trade.valid_till})")
    click.echo(f"\nDone: {len(expired)} trades expired")


# ============================================================================
# CLI: db (direct database access)
# ============================================================================


@cli.group()
def db():
    """Direct database management (bypasses API)."""
    pass


@db.command("init")
def db_init():
    """Create any missing tables."""
    asyncio.run(_init_db())
    click.echo("Database initialized.")


@db.command("clear")
@click.confirmation_option(prompt="Are you sure you want to clear all data?")
def db_clear():
    """Clear all data from the database (destructive!)."""
    click.echo("Clearing database...")
    asyncio.run(_clear_db())
    click.echo("Database cleared and tables recreated.")


@db.command("status")
def db_status():
    """Show database status and record counts."""

    async def run():
        await _init_db()
        return await _count_records()

    counts = asyncio.run(run())

    click.echo("\nDatabase Status:")
    click.echo("-" * 30)
    for table, count in counts.items():
        click.echo(f"  {table:<17} {count:>10,}")
    click.echo("-" * 30)
    click.echo(f"  {'Total':<17} {sum(counts.values()):>10,}")


# ============================================================================
# CLI: db users (direct database access for users)
# ============================================================================


@db.group("users")
def db_users():
    """Manage users directly in database."""
    pass


@db_users.command("load")
@click.option(
    "--file", "-f",
    default="data/seed.yaml",
    type=click.Path(exists=True),
    help="YAML file with user data",
)
def db_users_load(file):
    """Load users from a YAML file directly to database."""
    click.echo(f"Loading users from {file} (direct DB)...")

    async def run():
        await _init_db()
        return await _db_load_users(Path(file))

    loaded, skipped = asyncio.run(run())
    click.echo(f"\nDone: {loaded} loaded, {skipped} skipped")


@db_users.command("show")
def db_users_show():
    """Show all users from database."""

    async def run():
        await _init_db()
        return await _db_show_users()

    users_list = asyncio.run(run())

    if not users_list:
        click.echo("No users found.")
        return

    click.echo(f"\n{'Role':<10} {'Firm':<30} {'Phone':<12} {'Email':<30}")
    click.echo("-" * 85)
    for u in users_list:
        click.echo(
            f"{u.role.value:<10} {u.firm_name or '':<30} {u.phone or '':<12} {u.email or '':<30}"
        )
    click.echo(f"\nTotal: {len(users_list)} users")


if __name__ == "__main__":
    cli()
