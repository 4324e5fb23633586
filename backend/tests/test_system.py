"""
Health endpoint, CORS headers and CLI commands.
"""

from optimaster.extensions import db
from optimaster.models import User


class TestHealth:

    def test_health(self, client, supplier):
        resp = client.get("/api/health")
        assert resp.status_code == 200

        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["suppliers"] == 1
        assert body["time"].endswith("Z")

    def test_health_is_public(self, client):
        assert client.get("/api/health").status_code == 200


class TestCors:

    def test_allowed_origin(self, client):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert "Authorization" in resp.headers["Access-Control-Allow-Headers"]

    def test_other_origin(self, client):
        resp = client.get("/api/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestCli:

    def test_system_init_creates_admin_once(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init", "--admin-email", "boss@optimaster.test"])
        assert result.exit_code == 0, result.output
        assert "PASS Created user: boss@optimaster.test" in result.output

        result = runner.invoke(args=["system", "init", "--admin-email", "boss@optimaster.test"])
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert db.session.query(User).count() == 1

    def test_users_create_and_list(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "users", "create",
            "--email", "desk@optimaster.test",
            "--name", "Front Desk",
            "--password", "Password123!",
        ])
        assert result.exit_code == 0, result.output

        result = runner.invoke(args=["users", "list"])
        assert "desk@optimaster.test" in result.output

    def test_users_create_weak_password(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "users", "create",
            "--email", "desk@optimaster.test",
            "--name", "Front Desk",
            "--password", "short",
        ])
        assert result.exit_code == 1
        assert "Password validation failed" in result.output

    def test_reset_db_requires_confirmation(self, app, supplier):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "reset-db"])
        assert result.exit_code == 1

        result = runner.invoke(args=["system", "reset-db", "--yes"])
        assert result.exit_code == 0
