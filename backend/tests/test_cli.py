"""
Flask CLI: system bootstrap and user commands.
"""

from phonepos.extensions import db
from phonepos.models import Role, User


def test_system_init_is_idempotent(app):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert first.exit_code == 0, first.output
    assert "Created admin user" in first.output
    assert "already exists" in second.output
    admins = db.session.query(User).filter_by(role=Role.ADMIN).all()
    assert [u.phone for u in admins] == ["09123456789"]


def test_users_create_and_list(app):
    runner = app.test_cli_runner()

    result = runner.invoke(
        args=["users", "create", "--name", "Ko Aung", "--phone", "09412345678", "--password", "secret1", "--role", "SELLER"]
    )
    listing = runner.invoke(args=["users", "list"])

    assert result.exit_code == 0, result.output
    assert "with role 'SELLER'" in result.output
    assert "09412345678" in listing.output
    assert "Total: 1 user(s)" in listing.output


def test_users_create_reports_validation_errors(app):
    runner = app.test_cli_runner()

    result = runner.invoke(
        args=["users", "create", "--name", "Ko Aung", "--phone", "09412345678", "--password", "abc", "--role", "SELLER"]
    )

    assert result.exit_code != 0
    assert "at least 6 characters" in result.output
