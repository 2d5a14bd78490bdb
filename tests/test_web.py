"""Tests for the Flask JSON API."""

from unittest.mock import patch

import pytest

from printauth import commands
from printauth.web import create_app


@pytest.fixture
def client(tmp_path, clean_env):
    app = create_app(tmp_path / "settings.json")
    app.config["TESTING"] = True
    return app.test_client()


class TestSettingsRoute:
    """Tests for GET /api/settings."""

    def test_unconfigured(self, client):
        response = client.get("/api/settings")
        assert response.status_code == 200
        assert response.get_json() == {"settings": None}


class TestErrorRendering:
    """Tests for how command failures reach the browser."""

    def test_command_error_is_400(self, client):
        response = client.get("/api/users")
        assert response.status_code == 400
        assert response.get_json() == {"error": "Settings not configured"}

    def test_unknown_detail_is_404(self, client):
        response = client.put("/api/users/alice/password", json={"value": "x"})
        assert response.status_code == 404

    def test_bad_provider_id(self, client):
        response = client.post("/api/users/alice/pin/generate", json={"providerId": "abc"})
        assert response.status_code == 400
        assert "providerId" in response.get_json()["error"]

    def test_users_must_be_a_list(self, client):
        response = client.post("/api/bulk/pins", json={"users": "alice"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "'users' must be a list of objects."


class TestRouting:
    """Tests that routes hand the right arguments to the commands."""

    def test_update_card(self, client):
        with patch.object(commands, "update_user_card", return_value={"ok": True}) as update:
            response = client.put("/api/users/alice/card", json={"providerId": 3, "value": "C1"})
        assert response.get_json() == {"ok": True}
        args, kwargs = update.call_args
        assert args == ("alice", 3, "C1")

    def test_update_without_value_removes(self, client):
        with patch.object(commands, "update_user_pin", return_value={}) as update:
            client.put("/api/users/bob/pin", json={})
        assert update.call_args.args == ("bob", None, None)

    def test_provider_users(self, client):
        with patch.object(commands, "list_users_for_provider", return_value=[]) as listing:
            response = client.get("/api/auth-providers/9/users")
        assert response.status_code == 200
        assert listing.call_args.args[0] == 9

    def test_generate_otp(self, client):
        with patch.object(commands, "generate_user_otp", return_value={"otp": "Xy7"}) as generate:
            response = client.post("/api/users/carol/otp/generate", json={"providerId": "4"})
        assert response.get_json() == {"otp": "Xy7"}
        assert generate.call_args.args[:2] == ("carol", 4)

    def test_create_users(self, client):
        summary = {"success": 1, "failed": 0, "results": []}
        with patch.object(commands, "create_users", return_value=summary) as create:
            response = client.post(
                "/api/users",
                json={"users": [{"userName": "dave"}], "autoGeneratePin": True},
            )
        assert response.get_json() == summary
        assert create.call_args.kwargs["auto_generate_pin"] is True
        assert create.call_args.kwargs["auto_generate_otp"] is False

    def test_send_emails(self, client):
        summary = {"success": 0, "failed": 1, "errors": ["x"]}
        with patch.object(commands, "send_emails", return_value=summary) as send:
            response = client.post("/api/emails", json={"messages": [{"to": "a@example.com"}]})
        assert response.get_json() == summary
        assert send.call_args.args[0] == [{"to": "a@example.com"}]


class TestCreateUsersPayload:
    """Tests for the fields accepted by POST /api/users."""

    SUMMARY = {"success": 0, "failed": 0, "results": []}

    def test_default_provider_forwarded(self, client):
        with patch.object(commands, "create_users", return_value=self.SUMMARY) as create:
            client.post("/api/users", json={"users": [{"userName": "a"}], "defaultProviderId": "7"})
        assert create.call_args.kwargs["default_provider_id"] == 7

    def test_default_provider_absent(self, client):
        with patch.object(commands, "create_users", return_value=self.SUMMARY) as create:
            client.post("/api/users", json={"users": []})
        assert create.call_args.kwargs["default_provider_id"] is None

    @pytest.mark.parametrize("value", ["false", "true", 1, 0])
    def test_flags_must_be_booleans(self, client, value):
        with patch.object(commands, "create_users") as create:
            response = client.post("/api/users", json={"users": [], "autoGeneratePin": value})
        assert response.status_code == 400
        assert response.get_json()["error"] == "autoGeneratePin must be true or false."
        create.assert_not_called()

    def test_response_keeps_key_order(self, client):
        summary = {"success": 1, "failed": 0, "results": []}
        with patch.object(commands, "create_users", return_value=summary):
            response = client.post("/api/users", json={"users": [], "autoGenerateOtp": False})
        body = response.get_data(as_text=True)
        assert body.index('"success"') < body.index('"failed"') < body.index('"results"')
