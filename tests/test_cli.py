"""Typer CLI commands that run without a server."""
import bcrypt
from typer.testing import CliRunner

from docutrack.cli import app

runner = CliRunner()


def test_roles_lists_hierarchy():
    result = runner.invoke(app, ["roles"])
    assert result.exit_code == 0
    assert "[4] SystemAdministrator (@xu.edu.ph)" in result.output
    assert "[0] Intern (@my.xu.edu.ph)" in result.output
    assert "manage_access_control" in result.output


def test_hash_password():
    result = runner.invoke(app, ["hash-password", "--password", "Secret123!", "--rounds", "4"])
    assert result.exit_code == 0
    hashed = result.output.strip().splitlines()[-1]
    assert bcrypt.checkpw(b"Secret123!", hashed.encode())


def test_check_integrity_passes_on_seeded_whitelist():
    result = runner.invoke(app, ["check-integrity"])
    assert result.exit_code == 0
    assert "5 whitelist entries OK" in result.output
