"""
Tender Quorum CLI

Command-line interface for the tender marketplace core.
Provides commands for seeding organization responsibles, managing tenders
and bids, voting and browsing version history.

Usage:
    tq init --db market.db
    tq org grant --org org-1 --user alice
    tq tender create --org org-1 --user alice --name "Road repair" \\
        --service-type Construction --publish
    tq bid create --tender <id> --org org-2 --user bob --name "Our offer"
    tq bid approve --id <bid_id> --user carol
    tq tender versions --id <tender_id>
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from pydantic import BaseModel
from typing_extensions import Annotated

from tender_quorum.auth.directory import SQLiteResponsibilityDirectory
from tender_quorum.kernel.errors import TenderQuorumError
from tender_quorum.kernel.logging import configure_logging
from tender_quorum.kernel.policy import MarketplacePolicy
from tender_quorum.marketplace import Marketplace
from tender_quorum.tender.models import TenderStatus

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=False, log_level="WARNING")

app = typer.Typer(
    name="tq",
    help="Tender Quorum - tender marketplace with quorum bid approval",
    add_completion=False,
)

# Sub-apps
org_app = typer.Typer(help="Organization responsible users")
tender_app = typer.Typer(help="Tender lifecycle commands")
bid_app = typer.Typer(help="Bid lifecycle and voting commands")

app.add_typer(org_app, name="org")
app.add_typer(tender_app, name="tender")
app.add_typer(bid_app, name="bid")

# Global state
DEFAULT_DB = Path(".tq.db")

DbOption = Annotated[Optional[Path], typer.Option("--db", help="Database path")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def existing_db(db_path: Optional[Path] = None) -> Path:
    """Resolve the database path, exiting if it was never initialized"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'tq init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return db


def get_marketplace(db_path: Optional[Path] = None) -> Marketplace:
    """Get Marketplace instance"""
    return Marketplace(str(existing_db(db_path)), policy=MarketplacePolicy.from_env())


@contextmanager
def reported_errors() -> Iterator[None]:
    """Print marketplace errors as one line and exit 1"""
    try:
        yield
    except TenderQuorumError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def echo_json(value: BaseModel | list[BaseModel]) -> None:
    if isinstance(value, list):
        data = [item.model_dump(mode="json") for item in value]
    else:
        data = value.model_dump(mode="json")
    typer.echo(json.dumps(data, indent=2, default=str))


# Initialization command


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(help="Database path"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new marketplace database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    # Creating the marketplace creates both schemas
    Marketplace(str(db))
    typer.echo(f"✓ Initialized marketplace database: {db}")


# Organization commands


def _directory(db: Optional[Path]) -> SQLiteResponsibilityDirectory:
    return SQLiteResponsibilityDirectory(
        existing_db(db),
        busy_timeout_seconds=MarketplacePolicy.from_env().sqlite_busy_timeout_seconds,
    )


@org_app.command("grant")
def org_grant(
    organization_id: Annotated[str, typer.Option("--org", help="Organization ID")],
    user_id: Annotated[str, typer.Option("--user", help="User ID")],
    db: DbOption = None,
) -> None:
    """Make a user responsible for an organization"""
    directory = _directory(db)
    with reported_errors():
        added = directory.grant(organization_id, user_id)

    if added:
        typer.echo(f"✓ {user_id} is now responsible for {organization_id}")
    else:
        typer.echo(f"  {user_id} was already responsible for {organization_id}")


@org_app.command("revoke")
def org_revoke(
    organization_id: Annotated[str, typer.Option("--org", help="Organization ID")],
    user_id: Annotated[str, typer.Option("--user", help="User ID")],
    db: DbOption = None,
) -> None:
    """Remove a user's responsibility for an organization"""
    directory = _directory(db)
    with reported_errors():
        removed = directory.revoke(organization_id, user_id)

    if not removed:
        typer.echo(f"Error: {user_id} is not responsible for {organization_id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Revoked {user_id} from {organization_id}")


@org_app.command("list")
def org_list(
    organization_id: Annotated[str, typer.Option("--org", help="Organization ID")],
    db: DbOption = None,
) -> None:
    """List an organization's responsible users"""
    directory = _directory(db)
    with reported_errors():
        users = directory.list_responsibles(organization_id)

    if not users:
        typer.echo(f"No responsible users for {organization_id}")
        return
    typer.echo(f"Responsible users for {organization_id} ({len(users)}):")
    for user_id in users:
        typer.echo(f"  - {user_id}")


# Tender commands


@tender_app.command("create")
def tender_create(
    organization_id: Annotated[str, typer.Option("--org", help="Organization ID")],
    creator_id: Annotated[str, typer.Option("--user", help="Creating user ID")],
    name: Annotated[str, typer.Option("--name", help="Tender name")],
    service_type: Annotated[
        str,
        typer.Option("--service-type", help="Service type (Construction, IT, Consulting)"),
    ],
    description: Annotated[str, typer.Option("--description", help="Tender description")] = "",
    publish: Annotated[
        bool,
        typer.Option("--publish", help="Create directly in PUBLISHED status"),
    ] = False,
    db: DbOption = None,
) -> None:
    """Create a new tender"""
    market = get_marketplace(db)
    with reported_errors():
        tender = market.create_tender(
            name=name,
            description=description,
            service_type=service_type,
            organization_id=organization_id,
            creator_id=creator_id,
            status=TenderStatus.PUBLISHED if publish else TenderStatus.CREATED,
        )

    typer.echo(f"✓ Created tender: {tender.tender_id}")
    typer.echo(f"  Name: {tender.name}")
    typer.echo(f"  Status: {tender.status.value}")
    typer.echo(f"  Version: {tender.version}")


@tender_app.command("show")
def tender_show(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show tender details"""
    market = get_marketplace(db)
    with reported_errors():
        tender = market.get_tender(tender_id)

    if json_output:
        echo_json(tender)
        return

    typer.echo(f"Tender: {tender.name}")
    typer.echo(f"  ID: {tender.tender_id}")
    typer.echo(f"  Organization: {tender.organization_id}")
    typer.echo(f"  Service type: {tender.service_type}")
    typer.echo(f"  Status: {tender.status.value}")
    typer.echo(f"  Version: {tender.version}")
    if tender.description:
        typer.echo(f"  Description: {tender.description}")


@tender_app.command("list")
def tender_list(
    service_type: Annotated[
        Optional[str],
        typer.Option("--service-type", help="Filter by service type"),
    ] = None,
    creator_id: Annotated[
        Optional[str],
        typer.Option("--creator", help="Only tenders created by this user"),
    ] = None,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List tenders"""
    market = get_marketplace(db)
    with reported_errors():
        if creator_id:
            tenders = market.list_tenders_by_creator(creator_id)
        else:
            tenders = market.list_tenders(service_type)

    if json_output:
        echo_json(tenders)
        return

    if not tenders:
        typer.echo("No tenders found")
        return

    typer.echo(f"Tenders ({len(tenders)}):")
    for tender in tenders:
        typer.echo(
            f"  {tender.tender_id}  {tender.status.value:<9}  "
            f"{tender.service_type:<12}  v{tender.version}  {tender.name}"
        )


@tender_app.command("update")
def tender_update(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    name: Annotated[Optional[str], typer.Option("--name", help="New name")] = None,
    description: Annotated[
        Optional[str], typer.Option("--description", help="New description")
    ] = None,
    service_type: Annotated[
        Optional[str], typer.Option("--service-type", help="New service type")
    ] = None,
    actor_id: Annotated[Optional[str], typer.Option("--user", help="Acting user ID")] = None,
    db: DbOption = None,
) -> None:
    """Edit tender content (appends a version)"""
    market = get_marketplace(db)
    with reported_errors():
        tender = market.update_tender(
            tender_id,
            name=name,
            description=description,
            service_type=service_type,
            actor_id=actor_id,
        )

    typer.echo(f"✓ Updated tender: {tender_id}")
    typer.echo(f"  Version: {tender.version}")


@tender_app.command("publish")
def tender_publish(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    actor_id: Annotated[Optional[str], typer.Option("--user", help="Acting user ID")] = None,
    db: DbOption = None,
) -> None:
    """Publish tender (open for bids)"""
    market = get_marketplace(db)
    with reported_errors():
        tender = market.publish_tender(tender_id, actor_id=actor_id)

    typer.echo(f"✓ Published tender: {tender_id}")
    typer.echo(f"  Status: {tender.status.value}")


@tender_app.command("close")
def tender_close(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    actor_id: Annotated[Optional[str], typer.Option("--user", help="Acting user ID")] = None,
    db: DbOption = None,
) -> None:
    """Close tender"""
    market = get_marketplace(db)
    with reported_errors():
        tender = market.close_tender(tender_id, actor_id=actor_id)

    typer.echo(f"✓ Closed tender: {tender_id}")
    typer.echo(f"  Status: {tender.status.value}")


@tender_app.command("rollback")
def tender_rollback(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    version: Annotated[int, typer.Option("--version", help="Version to restore")],
    actor_id: Annotated[Optional[str], typer.Option("--user", help="Acting user ID")] = None,
    db: DbOption = None,
) -> None:
    """Restore an earlier version's content as a new version"""
    market = get_marketplace(db)
    with reported_errors():
        tender = market.rollback_tender(tender_id, version, actor_id=actor_id)

    typer.echo(f"✓ Rolled back tender {tender_id} to version {version}")
    typer.echo(f"  New version: {tender.version}")


@tender_app.command("delete")
def tender_delete(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    actor_id: Annotated[Optional[str], typer.Option("--user", help="Acting user ID")] = None,
    db: DbOption = None,
) -> None:
    """Delete tender and its bids"""
    market = get_marketplace(db)
    with reported_errors():
        market.delete_tender(tender_id, actor_id=actor_id)

    typer.echo(f"✓ Deleted tender: {tender_id}")


@tender_app.command("versions")
def tender_versions(
    tender_id: Annotated[str, typer.Option("--id", help="Tender ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show a tender's version history"""
    market = get_marketplace(db)
    with reported_errors():
        versions = market.list_tender_versions(tender_id)

    if json_output:
        echo_json(versions)
        return

    typer.echo(f"Versions of {tender_id} ({len(versions)}):")
    for v in versions:
        restored = f"  (restored from v{v.rolled_back_from})" if v.rolled_back_from else ""
        typer.echo(f"  v{v.version}  {v.updated_at.isoformat()}  {v.name}{restored}")


# Bid commands


@bid_app.command("create")
def bid_create(
    tender_id: Annotated[str, typer.Option("--tender", help="Tender ID")],
    organization_id: Annotated[str, typer.Option("--org", help="Bidding organization ID")],
    creator_id: Annotated[str, typer.Option("--user", help="Submitting user ID")],
    name: Annotated[str, typer.Option("--name", help="Bid name")],
    description: Annotated[str, typer.Option("--description", help="Bid description")] = "",
    db: DbOption = None,
) -> None:
    """Submit a bid on a published tender"""
    market = get_marketplace(db)
    with reported_errors():
        bid = market.create_bid(
            name=name,
            description=description,
            tender_id=tender_id,
            organization_id=organization_id,
            creator_id=creator_id,
        )

    typer.echo(f"✓ Created bid: {bid.bid_id}")
    typer.echo(f"  Tender: {bid.tender_id}")
    typer.echo(f"  Status: {bid.status.value}")


@bid_app.command("show")
def bid_show(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show bid details"""
    market = get_marketplace(db)
    with reported_errors():
        bid = market.get_bid(bid_id)

    if json_output:
        echo_json(bid)
        return

    typer.echo(f"Bid: {bid.name}")
    typer.echo(f"  ID: {bid.bid_id}")
    typer.echo(f"  Tender: {bid.tender_id}")
    typer.echo(f"  Organization: {bid.organization_id}")
    typer.echo(f"  Status: {bid.status.value}")
    typer.echo(f"  Approvals: {bid.approval_count}")
    if bid.rejected_by:
        typer.echo(f"  Rejected by: {bid.rejected_by}")
    typer.echo(f"  Version: {bid.version}")


@bid_app.command("list")
def bid_list(
    tender_id: Annotated[
        Optional[str], typer.Option("--tender", help="Bids on this tender")
    ] = None,
    creator_id: Annotated[
        Optional[str], typer.Option("--creator", help="Bids submitted by this user")
    ] = None,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List bids by tender or by creator"""
    if bool(tender_id) == bool(creator_id):
        typer.echo("Error: pass exactly one of --tender or --creator", err=True)
        raise typer.Exit(1)

    market = get_marketplace(db)
    with reported_errors():
        if tender_id:
            bids = market.list_bids_by_tender(tender_id)
        else:
            bids = market.list_bids_by_creator(creator_id)

    if json_output:
        echo_json(bids)
        return

    if not bids:
        typer.echo("No bids found")
        return

    typer.echo(f"Bids ({len(bids)}):")
    for bid in bids:
        typer.echo(
            f"  {bid.bid_id}  {bid.status.value:<8}  "
            f"approvals={bid.approval_count}  v{bid.version}  {bid.name}"
        )


@bid_app.command("update")
def bid_update(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    name: Annotated[Optional[str], typer.Option("--name", help="New name")] = None,
    description: Annotated[
        Optional[str], typer.Option("--description", help="New description")
    ] = None,
    actor_id: Annotated[Optional[str], typer.Option("--user", help="Acting user ID")] = None,
    db: DbOption = None,
) -> None:
    """Edit bid content (appends a version)"""
    market = get_marketplace(db)
    with reported_errors():
        bid = market.update_bid(bid_id, name=name, description=description, actor_id=actor_id)

    typer.echo(f"✓ Updated bid: {bid_id}")
    typer.echo(f"  Version: {bid.version}")


@bid_app.command("approve")
def bid_approve(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    approver_id: Annotated[str, typer.Option("--user", help="Approving user ID")],
    db: DbOption = None,
) -> None:
    """Vote to approve a bid"""
    market = get_marketplace(db)
    with reported_errors():
        result = market.approve_bid(bid_id, approver_id)

    typer.echo(f"✓ Recorded approval from {approver_id}")
    typer.echo(f"  Approvals: {result.approval_count}/{result.quorum}")
    typer.echo(f"  Status: {result.status.value}")
    if result.tender_closed:
        typer.echo("  Tender closed")


@bid_app.command("reject")
def bid_reject(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    rejecter_id: Annotated[str, typer.Option("--user", help="Rejecting user ID")],
    db: DbOption = None,
) -> None:
    """Reject a bid (final)"""
    market = get_marketplace(db)
    with reported_errors():
        result = market.reject_bid(bid_id, rejecter_id)

    typer.echo(f"✓ Rejected bid: {bid_id}")
    typer.echo(f"  Status: {result.status.value}")


@bid_app.command("rollback")
def bid_rollback(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    version: Annotated[int, typer.Option("--version", help="Version to restore")],
    actor_id: Annotated[Optional[str], typer.Option("--user", help="Acting user ID")] = None,
    db: DbOption = None,
) -> None:
    """Restore an earlier version's content as a new version"""
    market = get_marketplace(db)
    with reported_errors():
        bid = market.rollback_bid(bid_id, version, actor_id=actor_id)

    typer.echo(f"✓ Rolled back bid {bid_id} to version {version}")
    typer.echo(f"  New version: {bid.version}")


@bid_app.command("delete")
def bid_delete(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    actor_id: Annotated[Optional[str], typer.Option("--user", help="Acting user ID")] = None,
    db: DbOption = None,
) -> None:
    """Delete bid"""
    market = get_marketplace(db)
    with reported_errors():
        market.delete_bid(bid_id, actor_id=actor_id)

    typer.echo(f"✓ Deleted bid: {bid_id}")


@bid_app.command("versions")
def bid_versions(
    bid_id: Annotated[str, typer.Option("--id", help="Bid ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show a bid's version history"""
    market = get_marketplace(db)
    with reported_errors():
        versions = market.list_bid_versions(bid_id)

    if json_output:
        echo_json(versions)
        return

    typer.echo(f"Versions of {bid_id} ({len(versions)}):")
    for v in versions:
        restored = f"  (restored from v{v.rolled_back_from})" if v.rolled_back_from else ""
        typer.echo(f"  v{v.version}  {v.updated_at.isoformat()}  {v.name}{restored}")


# Server command


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "0.0.0.0",
    port: Annotated[int, typer.Option("--port", help="Port")] = 8080,
    db: Annotated[Path, typer.Option("--db", help="Database path")] = DEFAULT_DB,
) -> None:
    """Run the health check server"""
    from tender_quorum.health_server import run_health_server

    run_health_server(host=host, port=port, db_path=str(db))


if __name__ == "__main__":
    app()
