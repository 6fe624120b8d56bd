"""
CLI integration tests

Drives the tq command through Typer's CliRunner against a real database
file.
"""

import json
import re

import pytest
from typer.testing import CliRunner

from tender_quorum.cli.main import app


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def db(runner: CliRunner, tmp_path):
    """Initialized database with org-a (alice) and org-b (u1, u2)"""
    db_path = tmp_path / "market.db"
    assert runner.invoke(app, ["init", "--db", str(db_path)]).exit_code == 0
    for org, user in (("org-a", "alice"), ("org-b", "u1"), ("org-b", "u2")):
        result = runner.invoke(app, ["org", "grant", "--org", org, "--user", user, "--db", str(db_path)])
        assert result.exit_code == 0, result.output
    return str(db_path)


def created_id(output: str) -> str:
    match = re.search(r"Created \w+: (\S+)", output)
    assert match, output
    return match.group(1)


def create_tender(runner: CliRunner, db: str, *extra: str) -> str:
    result = runner.invoke(
        app,
        [
            "tender", "create",
            "--org", "org-a",
            "--user", "alice",
            "--name", "Road repair",
            "--service-type", "Construction",
            *extra,
            "--db", db,
        ],
    )
    assert result.exit_code == 0, result.output
    return created_id(result.stdout)


def test_init_creates_database(runner: CliRunner, tmp_path) -> None:
    db_path = tmp_path / "new.db"

    result = runner.invoke(app, ["init", "--db", str(db_path)])

    assert result.exit_code == 0
    assert db_path.exists()
    assert "initialized" in result.stdout.lower()


def test_init_refuses_existing_database(runner: CliRunner, db: str) -> None:
    result = runner.invoke(app, ["init", "--db", db])

    assert result.exit_code == 1


def test_missing_database(runner: CliRunner, tmp_path) -> None:
    result = runner.invoke(app, ["tender", "list", "--db", str(tmp_path / "none.db")])

    assert result.exit_code == 1


def test_org_list(runner: CliRunner, db: str) -> None:
    result = runner.invoke(app, ["org", "list", "--org", "org-b", "--db", db])

    assert result.exit_code == 0
    assert "u1" in result.stdout
    assert "u2" in result.stdout


def test_org_grant_on_missing_database(runner: CliRunner, tmp_path) -> None:
    missing = tmp_path / "none.db"

    result = runner.invoke(
        app, ["org", "grant", "--org", "org-a", "--user", "bob", "--db", str(missing)]
    )

    assert result.exit_code == 1
    assert not missing.exists()


def test_org_grant_and_revoke(runner: CliRunner, db: str) -> None:
    granted = runner.invoke(app, ["org", "grant", "--org", "org-a", "--user", "bob", "--db", db])
    revoked = runner.invoke(app, ["org", "revoke", "--org", "org-a", "--user", "alice", "--db", db])
    listed = runner.invoke(app, ["org", "list", "--org", "org-a", "--db", db])

    assert granted.exit_code == 0
    assert revoked.exit_code == 0
    assert "bob" in listed.stdout
    assert "alice" not in listed.stdout


def test_tender_flow(runner: CliRunner, db: str) -> None:
    tender_id = create_tender(runner, db)

    assert runner.invoke(app, ["tender", "publish", "--id", tender_id, "--db", db]).exit_code == 0
    result = runner.invoke(
        app, ["tender", "update", "--id", tender_id, "--description", "3km", "--db", db]
    )
    assert result.exit_code == 0
    assert "Version: 2" in result.stdout

    result = runner.invoke(
        app, ["tender", "rollback", "--id", tender_id, "--version", "1", "--db", db]
    )
    assert "New version: 3" in result.stdout

    result = runner.invoke(app, ["tender", "show", "--id", tender_id, "--json", "--db", db])
    data = json.loads(result.stdout)
    assert data["status"] == "PUBLISHED"
    assert data["version"] == 3
    assert data["description"] == ""

    result = runner.invoke(app, ["tender", "versions", "--id", tender_id, "--db", db])
    assert "restored from v1" in result.stdout


def test_tender_list_filter(runner: CliRunner, db: str) -> None:
    create_tender(runner, db)

    result = runner.invoke(app, ["tender", "list", "--service-type", "IT", "--db", db])
    assert "No tenders found" in result.stdout

    result = runner.invoke(app, ["tender", "list", "--service-type", "Catering", "--db", db])
    assert result.exit_code == 1


def test_unauthorized_creator_exits_1(runner: CliRunner, db: str) -> None:
    result = runner.invoke(
        app,
        [
            "tender", "create",
            "--org", "org-a",
            "--user", "u1",
            "--name", "Road repair",
            "--service-type", "Construction",
            "--db", db,
        ],
    )

    assert result.exit_code == 1


def test_bid_quorum_flow(runner: CliRunner, db: str) -> None:
    tender_id = create_tender(runner, db, "--publish")
    result = runner.invoke(
        app,
        [
            "bid", "create",
            "--tender", tender_id,
            "--org", "org-b",
            "--user", "u1",
            "--name", "Offer",
            "--db", db,
        ],
    )
    assert result.exit_code == 0, result.output
    bid_id = created_id(result.stdout)

    result = runner.invoke(app, ["bid", "approve", "--id", bid_id, "--user", "u1", "--db", db])
    assert "Approvals: 1/2" in result.stdout

    result = runner.invoke(app, ["bid", "approve", "--id", bid_id, "--user", "u2", "--db", db])
    assert "APPROVED" in result.stdout
    assert "Tender closed" in result.stdout

    result = runner.invoke(app, ["bid", "reject", "--id", bid_id, "--user", "u1", "--db", db])
    assert result.exit_code == 1

    result = runner.invoke(app, ["bid", "list", "--tender", tender_id, "--json", "--db", db])
    (bid,) = json.loads(result.stdout)
    assert bid["approval_count"] == 2


def test_bid_list_requires_one_filter(runner: CliRunner, db: str) -> None:
    result = runner.invoke(app, ["bid", "list", "--db", db])

    assert result.exit_code == 1


def test_tender_delete(runner: CliRunner, db: str) -> None:
    tender_id = create_tender(runner, db)

    assert runner.invoke(app, ["tender", "delete", "--id", tender_id, "--db", db]).exit_code == 0
    result = runner.invoke(app, ["tender", "show", "--id", tender_id, "--db", db])
    assert result.exit_code == 1
