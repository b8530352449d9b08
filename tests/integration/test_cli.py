"""
Integration tests for the CLI.

Tests cover:
- import/export round trip through the in-memory database
- show output
- doctor checks
- Connection and configuration errors
"""

from pathlib import Path

import mongomock
from typer.testing import CliRunner

from casbin_mongo_adapter import __version__
from casbin_mongo_adapter.cli import (
    app,
    format_policy_line,
    parse_policy_csv,
    split_policy_line,
)
from casbin_mongo_adapter.schema import CasbinRule

TEST_URL = "mongodb://localhost:27017/casbin_test"

POLICY_CSV = """\
# sample policy
p, alice, data1, read
p, bob, data2, write

g, alice, admin
"""

runner = CliRunner()


def write_policy(directory: Path) -> Path:
    path = directory / "policy.csv"
    path.write_text(POLICY_CSV)
    return path


class TestPolicyCsv:
    """Tests for CSV helpers."""

    def test_parse_skips_comments_and_blanks(self, temp_dir: Path) -> None:
        """Only rule lines become records."""
        records = parse_policy_csv(write_policy(temp_dir))

        assert records == [
            CasbinRule(ptype="p", v0="alice", v1="data1", v2="read"),
            CasbinRule(ptype="p", v0="bob", v1="data2", v2="write"),
            CasbinRule(ptype="g", v0="alice", v1="admin"),
        ]

    def test_format_line(self) -> None:
        """Rules render as comma-separated lines."""
        assert format_policy_line("g", ["alice", "admin"]) == "g, alice, admin"

    def test_split_keeps_bracketed_commas(self) -> None:
        """Commas inside parentheses or brackets stay in the field."""
        assert split_policy_line("p, alice, keyMatch(/a, /b), read") == [
            "p",
            "alice",
            "keyMatch(/a, /b)",
            "read",
        ]
        assert split_policy_line("p, r.sub in ['a', 'b'], data1") == [
            "p",
            "r.sub in ['a', 'b']",
            "data1",
        ]

    def test_split_unbalanced_closer(self) -> None:
        """A stray closing bracket doesn't break splitting."""
        assert split_policy_line("p, a), b") == ["p", "a)", "b"]


class TestCommands:
    """Tests for CLI commands against the in-memory database."""

    def test_version(self) -> None:
        """--version prints the version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_import_then_export(
        self,
        patched_mongo: mongomock.MongoClient,
        temp_dir: Path,
    ) -> None:
        """Imported rules export back in the same form."""
        policy_path = write_policy(temp_dir)

        result = runner.invoke(app, ["--url", TEST_URL, "import", str(policy_path)])
        assert result.exit_code == 0, result.output
        assert "Imported 3 rules" in result.output

        result = runner.invoke(app, ["--url", TEST_URL, "export"])
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "p, alice, data1, read",
            "p, bob, data2, write",
            "g, alice, admin",
        ]

    def test_import_replaces(
        self,
        patched_mongo: mongomock.MongoClient,
        rule_collection: mongomock.Collection,
        temp_dir: Path,
    ) -> None:
        """Importing drops rules that were stored before."""
        rule_collection.insert_one({"ptype": "p", "v0": "stale"})

        runner.invoke(app, ["--url", TEST_URL, "import", str(write_policy(temp_dir))])

        assert rule_collection.count_documents({"v0": "stale"}) == 0
        assert rule_collection.count_documents({}) == 3

    def test_export_to_file(
        self,
        patched_mongo: mongomock.MongoClient,
        rule_collection: mongomock.Collection,
        temp_dir: Path,
    ) -> None:
        """--out writes the policy to a file."""
        rule_collection.insert_one({"ptype": "g", "v0": "alice", "v1": "admin"})
        out = temp_dir / "exported.csv"

        result = runner.invoke(app, ["--url", TEST_URL, "export", "--out", str(out)])

        assert result.exit_code == 0, result.output
        assert out.read_text() == "g, alice, admin\n"

    def test_show(
        self,
        patched_mongo: mongomock.MongoClient,
        rule_collection: mongomock.Collection,
    ) -> None:
        """show lists stored rules."""
        rule_collection.insert_one({"ptype": "p", "v0": "alice", "v1": "data1", "v2": "read"})

        result = runner.invoke(app, ["--url", TEST_URL, "show"])

        assert result.exit_code == 0, result.output
        assert "alice" in result.output
        assert "Total: 1 rules" in result.output

    def test_show_empty(self, patched_mongo: mongomock.MongoClient) -> None:
        """show reports an empty collection."""
        result = runner.invoke(app, ["--url", TEST_URL, "show"])

        assert result.exit_code == 0
        assert "No rules stored" in result.output

    def test_doctor(self, patched_mongo: mongomock.MongoClient) -> None:
        """doctor passes against a healthy database."""
        result = runner.invoke(app, ["--url", TEST_URL, "doctor"])

        assert result.exit_code == 0, result.output
        assert "Connection" in result.output
        assert "casbin_test.casbin_rule" in result.output
        assert "Indexes" in result.output

    def test_config_file(
        self,
        patched_mongo: mongomock.MongoClient,
        temp_dir: Path,
    ) -> None:
        """Settings can come from a YAML file."""
        config_path = temp_dir / "adapter.yaml"
        config_path.write_text(f"url: {TEST_URL}\ncollection: rules\n")

        result = runner.invoke(
            app,
            ["--config", str(config_path), "import", str(write_policy(temp_dir))],
        )

        assert result.exit_code == 0, result.output
        assert patched_mongo["casbin_test"]["rules"].count_documents({}) == 3

    def test_url_from_environment(
        self,
        patched_mongo: mongomock.MongoClient,
        rule_collection: mongomock.Collection,
    ) -> None:
        """CASBIN_MONGO_URL stands in for --url."""
        rule_collection.insert_one({"ptype": "p", "v0": "alice"})

        result = runner.invoke(app, ["export"], env={"CASBIN_MONGO_URL": TEST_URL})

        assert result.exit_code == 0, result.output
        assert result.output == "p, alice\n"

    def test_round_trip_with_bracketed_commas(
        self,
        patched_mongo: mongomock.MongoClient,
        rule_collection: mongomock.Collection,
        temp_dir: Path,
    ) -> None:
        """Fields holding commas inside parentheses survive export then import."""
        rule_collection.insert_one(
            {"ptype": "p", "v0": "alice", "v1": "keyMatch(/a, /b)", "v2": "read"}
        )
        out = temp_dir / "exported.csv"

        result = runner.invoke(app, ["--url", TEST_URL, "export", "--out", str(out)])
        assert result.exit_code == 0, result.output
        result = runner.invoke(app, ["--url", TEST_URL, "import", str(out)])
        assert result.exit_code == 0, result.output

        assert list(rule_collection.find({}, {"_id": False})) == [
            {
                "ptype": "p",
                "v0": "alice",
                "v1": "keyMatch(/a, /b)",
                "v2": "read",
                "v3": "",
                "v4": "",
                "v5": "",
            }
        ]


class TestErrors:
    """Tests for failure reporting."""

    def test_invalid_url(self) -> None:
        """A bad URL exits with code 1."""
        result = runner.invoke(app, ["--url", "http://localhost", "show"])

        assert result.exit_code == 1
        assert "E5001" in result.output

    def test_doctor_invalid_url(self) -> None:
        """doctor reports a failed connection."""
        result = runner.invoke(app, ["--url", "http://localhost", "doctor"])

        assert result.exit_code == 1
        assert "Connection" in result.output

    def test_invalid_config(self, temp_dir: Path) -> None:
        """An invalid config file exits with code 1."""
        config_path = temp_dir / "adapter.yaml"
        config_path.write_text("port: 27017\n")

        result = runner.invoke(app, ["--config", str(config_path), "show"])

        assert result.exit_code == 1
        assert "E7001" in result.output
