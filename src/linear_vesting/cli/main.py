"""
Linear Vesting CLI

Command-line interface for a vesting ledger journal. Custody is recorded,
not executed: funding and payouts are written to the journal and settled
outside the ledger.

Usage:
    vesting init --name "Team" --token 0xtoken --start 1767225600 \\
        --duration 31536000 --admin 0xadmin
    vesting grants add --caller 0xadmin --recipient 0xalice --amount 1000
    vesting claimable --recipient 0xalice
    vesting claim --caller 0xalice
    vesting admin change --caller 0xadmin --new-admin 0xbob
"""

import json
import os
from pathlib import Path
from typing import NoReturn, Optional

import typer
from typing_extensions import Annotated

from linear_vesting.kernel.custody import AccountingCustody
from linear_vesting.kernel.errors import VestingError
from linear_vesting.kernel.logging import configure_logging_from_env
from linear_vesting.kernel.time import FixedTimeProvider, RealTimeProvider
from linear_vesting.ledger import VestingLedger

# Logs go to stderr so stdout stays parseable
configure_logging_from_env()

app = typer.Typer(
    name="vesting",
    help="Linear vesting ledger - pooled grants released second by second",
    add_completion=False,
)

# Sub-apps
pool_app = typer.Typer(help="Pool inspection commands")
grants_app = typer.Typer(help="Grant management commands")
admin_app = typer.Typer(help="Admin and issuer capability commands")

app.add_typer(pool_app, name="pool")
app.add_typer(grants_app, name="grants")
app.add_typer(admin_app, name="admin")

DEFAULT_DB = Path(os.getenv("VESTING_DB", ".vesting.db"))

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", help="Journal database path"),
]
NowOption = Annotated[
    Optional[int],
    typer.Option("--now", help="Evaluate at this Unix second instead of the clock"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def get_ledger(
    db_path: Optional[Path] = None,
    now: Optional[int] = None,
    must_exist: bool = True,
) -> VestingLedger:
    """Open the ledger journal"""
    db = db_path or DEFAULT_DB
    if must_exist and not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'vesting init --db {db} ...' to create a pool", err=True)
        raise typer.Exit(1)

    time_provider = FixedTimeProvider(now) if now is not None else RealTimeProvider()
    return VestingLedger(
        str(db),
        custody=AccountingCustody(),
        time_provider=time_provider,
    )


def fail(error: VestingError) -> NoReturn:
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1)


# Initialization command


@app.command()
def init(
    name: Annotated[str, typer.Option("--name", help="Pool name")],
    token: Annotated[str, typer.Option("--token", help="Vested unit reference")],
    start: Annotated[int, typer.Option("--start", help="Vesting start (Unix seconds)")],
    duration: Annotated[
        int, typer.Option("--duration", help="Vesting duration in seconds")
    ],
    admin: Annotated[str, typer.Option("--admin", help="Admin account")],
    db: DbOption = None,
    now: NowOption = None,
) -> None:
    """Create the vesting pool"""
    ledger = get_ledger(db, now, must_exist=False)

    try:
        pool = ledger.initialize(
            name=name,
            token=token,
            start_time=start,
            vesting_duration=duration,
            admin=admin,
        )
    except VestingError as e:
        fail(e)

    typer.echo(f"✓ Initialized pool: {pool.name}")
    typer.echo(f"  Window: {pool.start_time} → {pool.end_time}")
    typer.echo(f"  Admin: {pool.admin}")


# Pool commands


@pool_app.command("show")
def pool_show(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show the pool record and totals"""
    ledger = get_ledger(db)

    try:
        pool = ledger.get_pool()
    except VestingError as e:
        fail(e)

    if json_output:
        typer.echo(json.dumps(pool.model_dump(), indent=2))
        return

    typer.echo(f"\nPool: {pool.name}")
    typer.echo(f"  Token: {pool.token}")
    typer.echo(f"  Admin: {pool.admin}")
    typer.echo(f"  Start: {pool.start_time}")
    typer.echo(f"  End: {pool.end_time}")
    typer.echo(f"  Duration: {pool.vesting_duration}s")
    typer.echo(f"  Total Allocated: {pool.total_amount}")
    typer.echo(f"  Total Claimed: {pool.total_claimed}")
    typer.echo(f"  Unclaimed: {pool.total_unclaimed()}")
    typer.echo(f"  Grants: {pool.grant_count}")


# Grant commands


@grants_app.command("add")
def grants_add(
    caller: Annotated[str, typer.Option("--caller", help="Funding account")],
    recipients: Annotated[
        list[str],
        typer.Option("--recipient", help="Recipient account (repeatable)"),
    ],
    amounts: Annotated[
        list[int],
        typer.Option("--amount", help="Grant amount (repeatable, same order)"),
    ],
    db: DbOption = None,
    now: NowOption = None,
) -> None:
    """Fund and create a batch of grants"""
    ledger = get_ledger(db, now)

    try:
        grants = ledger.add_grants(recipients, amounts, caller=caller)
    except VestingError as e:
        fail(e)

    typer.echo(f"✓ Created {len(grants)} grant(s)")
    for recipient, grant in zip(recipients, grants):
        typer.echo(f"  {recipient}: {grant.amount} ({grant.per_second_rate}/s)")


@grants_app.command("show")
def grants_show(
    recipient: Annotated[str, typer.Option("--recipient", help="Recipient account")],
    db: DbOption = None,
    now: NowOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show one recipient's grant and balances"""
    ledger = get_ledger(db, now)

    try:
        grant = ledger.get_grant(recipient)
        vested = ledger.vested_balance(recipient)
        claimable = ledger.calculate_claimable(recipient)
    except VestingError as e:
        fail(e)

    if json_output:
        data = grant.model_dump()
        data.update(recipient=recipient, vested=vested, claimable=claimable)
        typer.echo(json.dumps(data, indent=2))
        return

    typer.echo(f"\nGrant: {recipient}")
    typer.echo(f"  Amount: {grant.amount}")
    typer.echo(f"  Rate: {grant.per_second_rate}/s")
    typer.echo(f"  Vested: {vested}")
    typer.echo(f"  Claimed: {grant.total_claimed}")
    typer.echo(f"  Claimable: {claimable}")


@grants_app.command("list")
def grants_list(
    db: DbOption = None,
    json_output: JsonOption = False,
) -> None:
    """List all grants"""
    ledger = get_ledger(db)
    grants = ledger.list_grants()

    if json_output:
        typer.echo(json.dumps([grant.model_dump() for grant in grants], indent=2))
        return

    if not grants:
        typer.echo("No grants")
        return

    typer.echo(f"Grants ({len(grants)}):")
    for grant in grants:
        typer.echo(
            f"  {grant.recipient}: {grant.amount} (claimed {grant.total_claimed})"
        )


# Balance commands


@app.command()
def claim(
    caller: Annotated[str, typer.Option("--caller", help="Claiming recipient")],
    db: DbOption = None,
    now: NowOption = None,
) -> None:
    """Claim everything currently vested and unclaimed"""
    ledger = get_ledger(db, now)

    try:
        amount = ledger.claim(caller)
    except VestingError as e:
        fail(e)

    typer.echo(f"✓ Claimed {amount}")
    typer.echo(f"  Total claimed: {ledger.claimed_balance(caller)}")


@app.command()
def claimable(
    recipient: Annotated[str, typer.Option("--recipient", help="Recipient account")],
    db: DbOption = None,
    now: NowOption = None,
) -> None:
    """Print the amount claimable right now"""
    ledger = get_ledger(db, now)

    try:
        typer.echo(ledger.calculate_claimable(recipient))
    except VestingError as e:
        fail(e)


@app.command()
def vested(
    recipient: Annotated[str, typer.Option("--recipient", help="Recipient account")],
    db: DbOption = None,
    now: NowOption = None,
) -> None:
    """Print the amount vested so far, claimed or not"""
    ledger = get_ledger(db, now)

    try:
        typer.echo(ledger.vested_balance(recipient))
    except VestingError as e:
        fail(e)


@app.command("per-day")
def per_day(
    recipient: Annotated[
        Optional[str],
        typer.Option("--recipient", help="Daily release of this recipient's grant"),
    ] = None,
    amount: Annotated[
        Optional[int],
        typer.Option("--amount", help="Daily release of an arbitrary amount"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Print the daily release rate"""
    if (recipient is None) == (amount is None):
        typer.echo("Error: pass exactly one of --recipient or --amount", err=True)
        raise typer.Exit(1)

    ledger = get_ledger(db)

    try:
        if recipient is not None:
            typer.echo(ledger.tokens_vested_per_day(recipient))
        else:
            typer.echo(ledger.tokens_vested_per_day_for_amount(amount))
    except VestingError as e:
        fail(e)


# Admin commands


@admin_app.command("change")
def admin_change(
    caller: Annotated[str, typer.Option("--caller", help="Current admin")],
    new_admin: Annotated[str, typer.Option("--new-admin", help="New admin account")],
    db: DbOption = None,
    now: NowOption = None,
) -> None:
    """Transfer the admin capability"""
    ledger = get_ledger(db, now)

    try:
        ledger.change_admin(new_admin, caller=caller)
    except VestingError as e:
        fail(e)

    typer.echo(f"✓ Admin changed to {new_admin}")


@admin_app.command("grant-issuer")
def admin_grant_issuer(
    caller: Annotated[str, typer.Option("--caller", help="Admin account")],
    account: Annotated[str, typer.Option("--account", help="Account to allow")],
    db: DbOption = None,
    now: NowOption = None,
) -> None:
    """Allow an account to fund and create grants"""
    ledger = get_ledger(db, now)

    try:
        ledger.grant_issuer(account, caller=caller)
    except VestingError as e:
        fail(e)

    typer.echo(f"✓ {account} may now issue grants")


@admin_app.command("revoke-issuer")
def admin_revoke_issuer(
    caller: Annotated[str, typer.Option("--caller", help="Admin account")],
    account: Annotated[str, typer.Option("--account", help="Account to revoke")],
    db: DbOption = None,
    now: NowOption = None,
) -> None:
    """Stop an account from funding and creating grants"""
    ledger = get_ledger(db, now)

    try:
        ledger.revoke_issuer(account, caller=caller)
    except VestingError as e:
        fail(e)

    typer.echo(f"✓ {account} may no longer issue grants")


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
