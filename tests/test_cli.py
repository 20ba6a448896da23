"""Tests for the treesync CLI."""

import json

import pytest
from click.testing import CliRunner

from treesync.cli import cli


@pytest.fixture
def sync_file(tmp_path):
    path = tmp_path / "sync.json"
    path.write_text(
        json.dumps(
            {
                "mappings": [
                    {
                        "kind": "tree",
                        "source": {"repository": "org/src", "path": "buildSupport"},
                        "destinations": [{"repository": "org/dest", "path": "buildSupport"}],
                    }
                ],
                "output": "commit",
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def seeded(fake_client):
    fake_client.seed("org", "src", "main", {"buildSupport/x.sh": b"echo build\n"})
    fake_client.seed("org", "dest", "main", {"README.md": b"dest\n"})
    return fake_client


def run(client, *args):
    return CliRunner().invoke(cli, list(args), obj={"client": client})


def test_diff(seeded, sync_file):
    result = run(seeded, "diff", str(sync_file))

    assert result.exit_code == 0, result.output
    assert "create https://github.com/org/dest/tree/main/buildSupport" in result.output
    assert "1 to create, 0 to update, 0 to remove" in result.output
    assert not [call for call in seeded.calls if call[0].startswith("create_")]


def test_sync_commit(seeded, sync_file):
    result = run(seeded, "sync", str(sync_file))

    assert result.exit_code == 0, result.output
    assert len(seeded.calls_to("create_commit")) == 1
    assert result.output.strip().splitlines()[-1].startswith("https://github.com/org/dest/commit/")


def test_sync_up_to_date(fake_client, sync_file):
    fake_client.seed("org", "src", "main", {"buildSupport/x.sh": b"echo build\n"})
    fake_client.seed("org", "dest", "main", {"buildSupport/x.sh": b"echo build\n"})

    result = run(fake_client, "sync", str(sync_file))

    assert result.exit_code == 0, result.output
    assert "Everything up to date!" in result.output
    assert fake_client.calls_to("create_commit") == []


def test_sync_pull_request_with_label(seeded, sync_file):
    result = run(seeded, "sync", str(sync_file), "--output", "pull-request", "--label", "automation")

    assert result.exit_code == 0, result.output
    assert "https://github.com/org/dest/pull/1" in result.output
    pull = seeded.repo("org", "dest").pulls[1]
    assert "* org/src" in pull["body"]
    assert seeded.repo("org", "dest").labels[1] == ["automation"]


def test_labels_require_pull_request(seeded, sync_file):
    result = run(seeded, "sync", str(sync_file), "--output", "branch", "--label", "automation")

    assert result.exit_code == 2
    assert seeded.calls == []


def test_missing_source_reports_error(fake_client, sync_file):
    fake_client.seed("org", "dest", "main", {"README.md": b"dest\n"})

    result = run(fake_client, "diff", str(sync_file))

    assert result.exit_code == 1
    assert "Error:" in result.output
