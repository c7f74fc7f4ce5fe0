"""
CLI command tests (flask system / users / perms / maintenance).
"""

from datetime import timedelta

from femenine.extensions import db
from femenine.models import SessionToken, User
from femenine.permissions import Role
from femenine.services import session_service
from femenine.time_utils import utcnow


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init", "--email", "Boss@Femenine.test"])
    assert result.exit_code == 0, result.output
    assert "Created ADMIN user: boss@femenine.test" in result.output

    result = runner.invoke(args=["system", "init"])
    assert result.exit_code == 0
    assert "already exists" in result.output
    assert db.session.query(User).filter(User.role == Role.ADMIN).count() == 1


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create",
        "--email", "ana@femenine.test",
        "--name", "Ana",
        "--password", "Password123!",
        "--role", "manager",
    ])
    assert result.exit_code == 0, result.output
    assert db.session.query(User).filter_by(email="ana@femenine.test").one().role is Role.MANAGER

    result = runner.invoke(args=["users", "list"])
    assert "ana@femenine.test" in result.output
    assert "MANAGER" in result.output


def test_users_create_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--email", "x@femenine.test", "--name", "X", "--password", "weak",
    ])
    assert result.exit_code != 0
    assert db.session.query(User).count() == 0


def test_perms_list_for_role(app):
    result = app.test_cli_runner().invoke(args=["perms", "list", "--role", "EMPLOYEE"])
    assert result.exit_code == 0
    assert "CREATE_SALES" in result.output
    assert "DELETE_PRODUCTS" not in result.output


def test_cleanup_sessions(app, db_session, employee):
    old, _ = session_service.create_session(employee.id)
    old.created_at = utcnow() - timedelta(days=40)
    old.expires_at = utcnow() - timedelta(days=39)
    session_service.create_session(employee.id)
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-sessions"])
    assert result.exit_code == 0
    assert "Deleted 1 session(s)" in result.output
    assert db.session.query(SessionToken).count() == 1
