"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner
from sqlalchemy import create_engine, text

from dbmd.cli import cli
from dbmd.database import DatabaseMetadata
from dbmd.models import CaseSensitivity


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def connection_file(tmp_path):
    db_path = tmp_path / "sales.db"
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE customers (id INTEGER PRIMARY KEY, name VARCHAR(50))"))
        conn.execute(text(
            "CREATE TABLE orders (id INTEGER PRIMARY KEY, "
            "customer_id INTEGER REFERENCES customers (id), "
            "bill_to_customer_id INTEGER REFERENCES customers (id))"
        ))
        conn.execute(text("CREATE TABLE \"tmp$scratch\" (x INTEGER)"))
    engine.dispose()

    path = tmp_path / "conn.yaml"
    path.write_text(f"source: sqlalchemy\nurl: sqlite:///{db_path}\n")
    return path


@pytest.fixture
def snapshot(tmp_path, sales_metadata):
    path = tmp_path / "sales.xml"
    sales_metadata.save(path)
    return path


class TestFetchCommand:
    """Tests for `dbmd fetch`."""

    def test_fetch_json(self, runner, connection_file, tmp_path):
        output = tmp_path / "out" / "sales.json"
        result = runner.invoke(cli, ["fetch", "--connection", str(connection_file), str(output)])

        assert result.exit_code == 0, result.output
        md = DatabaseMetadata.load(output)
        assert md.case_sensitivity == CaseSensitivity.INSENSITIVE_STORED_MIXED
        assert {r.name for r in md.get_relation_ids()} == {"customers", "orders", "tmp$scratch"}
        assert len(md.foreign_keys) == 2

    def test_fetch_with_options_and_overrides(self, runner, connection_file, tmp_path):
        options = tmp_path / "opts.yaml"
        options.write_text("include_foreign_keys: false\n")
        output = tmp_path / "sales.xml"

        result = runner.invoke(cli, [
            "fetch",
            "--connection", str(connection_file),
            "--options", str(options),
            "--exclude", r".*\$.*",
            str(output),
        ])

        assert result.exit_code == 0, result.output
        md = DatabaseMetadata.load(output)
        assert [r.name for r in md.get_relation_ids()] == ["customers", "orders"]
        assert md.foreign_keys == ()

    def test_invalid_exclude_pattern(self, runner, connection_file, tmp_path):
        output = tmp_path / "sales.json"
        result = runner.invoke(cli, [
            "fetch", "--connection", str(connection_file), "--exclude", "([", str(output),
        ])
        assert result.exit_code == 2
        assert "Invalid exclude pattern" in result.output
        assert not output.exists()

    @pytest.mark.parametrize("text", ["exclude_pattern: 123\n", "include_views: 'false'\n"])
    def test_malformed_options_file(self, runner, connection_file, tmp_path, text):
        options = tmp_path / "opts.yaml"
        options.write_text(text)
        output = tmp_path / "sales.json"

        result = runner.invoke(cli, [
            "fetch", "--connection", str(connection_file), "--options", str(options), str(output),
        ])

        assert result.exit_code == 2
        assert "Invalid" in result.output
        assert not output.exists()

    def test_invalid_connection_settings(self, runner, tmp_path):
        conn = tmp_path / "conn.yaml"
        conn.write_text("source: sqlalchemy\n")
        result = runner.invoke(cli, ["fetch", "--connection", str(conn), str(tmp_path / "x.json")])
        assert result.exit_code == 2
        assert "No url property" in result.output

    def test_unsupported_output_format(self, runner, connection_file, tmp_path):
        result = runner.invoke(cli, ["fetch", "--connection", str(connection_file), str(tmp_path / "x.csv")])
        assert result.exit_code == 2
        assert "Unsupported metadata format" in result.output

    def test_connection_failure(self, runner, tmp_path):
        conn = tmp_path / "conn.yaml"
        conn.write_text("source: sqlalchemy\nurl: nosuchdialect://host/db\n")
        output = tmp_path / "x.json"
        result = runner.invoke(cli, ["fetch", "--connection", str(conn), str(output)])
        assert result.exit_code == 1
        assert not output.exists()


class TestInfoCommand:
    """Tests for `dbmd info`."""

    def test_info(self, runner, snapshot):
        result = runner.invoke(cli, ["info", str(snapshot)])
        assert result.exit_code == 0, result.output
        assert "SALES.CUSTOMERS" in result.output
        assert "SALES.ORDERS" in result.output
        assert "CUSTOMER_ID" in result.output


class TestJoinCommand:
    """Tests for `dbmd join`."""

    def test_join(self, runner, snapshot):
        result = runner.invoke(cli, [
            "join", str(snapshot), "orders", "customers", "--child_alias", "o", "--parent_alias", "c",
        ])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "o.CUSTOMER_ID = c.ID"

    def test_join_parent_first(self, runner, snapshot):
        result = runner.invoke(cli, ["join", str(snapshot), "SALES.ORDERS", "SALES.CUSTOMERS", "--parent_first"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "ID = CUSTOMER_ID"

    def test_no_foreign_key(self, runner, snapshot):
        result = runner.invoke(cli, ["join", str(snapshot), "customers", "orders"])
        assert result.exit_code == 1
        assert "No foreign key found" in result.output

    def test_ambiguous(self, runner, connection_file, tmp_path):
        output = tmp_path / "sales.json"
        assert runner.invoke(cli, ["fetch", "--connection", str(connection_file), str(output)]).exit_code == 0

        result = runner.invoke(cli, ["join", str(output), "orders", "customers"])
        assert result.exit_code == 1
        assert "multiple foreign keys" in result.output

        result = runner.invoke(cli, ["join", str(output), "orders", "customers", "--fields", "bill_to_customer_id"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "bill_to_customer_id = id"
