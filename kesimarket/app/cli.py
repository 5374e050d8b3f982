from __future__ import annotations

import click
from flask import Blueprint, current_app

from kesimarket.app.extensions import api, db
from kesimarket.app.models import CartSession

cli_bp = Blueprint("cli", __name__, cli_group=None)


@cli_bp.cli.command("init-db")
def init_db() -> None:
    """Create the local tables (cart session ledger)."""
    db.create_all()
    print("Database initialised.")


@cli_bp.cli.command("api-health")
def api_health() -> None:
    """Check that the remote API answers."""
    base_url = current_app.config["API_BASE_URL"]
    if api.client.health_check():
        print(f"API reachable at {base_url}")
        return
    raise click.ClickException(f"API unreachable at {base_url}")


@cli_bp.cli.command("prune-cart-sessions")
@click.option("--days", type=int, default=None, help="Retention in days (default: CART_SESSION_RETENTION_DAYS).")
def prune_cart_sessions(days: int | None) -> None:
    """Delete merged and abandoned cart session rows.

    Safe to run multiple times.
    """
    days = days if days is not None else current_app.config["CART_SESSION_RETENTION_DAYS"]
    if days < 0:
        raise click.BadParameter("must be >= 0", param_hint="--days")
    deleted = CartSession.prune(days)
    print(f"Pruned {deleted} cart sessions older than {days} days.")
