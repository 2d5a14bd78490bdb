"""Tests for the settings store."""

import json

import pytest
import yaml

from printauth.config import (
    SETTINGS_KEY,
    ConfigurationError,
    EmailDeliveryMethod,
    ShortIdPolicy,
    TenantSettings,
    load_settings,
    parse_settings,
    save_settings,
    settings_to_dict,
    update_settings,
)


class TestParseSettings:
    """Tests for parse_settings."""

    def test_none_is_unconfigured(self):
        assert parse_settings(None) is None

    def test_blank_url_and_key_is_unconfigured(self):
        assert parse_settings({"tenantUrl": " ", "apiKey": ""}) is None

    def test_defaults(self):
        settings = parse_settings({"tenantUrl": "tenant.example.com/", "apiKey": " key "})
        assert settings.tenant_url == "https://tenant.example.com"
        assert settings.api_key == "key"
        assert settings.pin_length == 4
        assert settings.short_id == ShortIdPolicy()
        assert settings.email.method is EmailDeliveryMethod.DESKTOP
        assert settings.email.pin_template.subject == "Your SAFEQ PIN"

    def test_missing_url(self):
        with pytest.raises(ConfigurationError, match="tenant URL"):
            parse_settings({"apiKey": "key"})

    def test_missing_key(self):
        with pytest.raises(ConfigurationError, match="API key"):
            parse_settings({"tenantUrl": "https://tenant.example.com"})

    def test_not_an_object(self):
        with pytest.raises(ConfigurationError):
            parse_settings(["tenantUrl"])

    def test_short_id_policy_and_otp_aliases(self):
        settings = parse_settings(
            {
                "tenantUrl": "https://tenant.example.com",
                "apiKey": "key",
                "pinLength": "6",
                "otpLength": 8,
                "shortIdUseUppercase": False,
                "otpUseSpecial": "true",
                "otpExcludeCharacters": "O0",
            }
        )
        assert settings.pin_length == 6
        assert settings.short_id.length == 8
        assert settings.short_id.use_uppercase is False
        assert settings.short_id.use_special is True
        assert settings.short_id.exclude_characters == "O0"

    def test_negative_length_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_settings({"tenantUrl": "https://t.example.com", "apiKey": "k", "pinLength": -1})

    def test_non_numeric_length_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_settings({"tenantUrl": "https://t.example.com", "apiKey": "k", "pinLength": "four"})

    def test_email_settings(self):
        settings = parse_settings(
            {
                "tenantUrl": "https://t.example.com",
                "apiKey": "k",
                "emailSettings": {
                    "method": "Graph",
                    "graphTenantId": "tid",
                    "graphClientId": "cid",
                    "graphClientSecret": "secret",
                    "graphSenderAddress": " sender@example.com ",
                },
            }
        )
        assert settings.email.method is EmailDeliveryMethod.GRAPH
        assert settings.email.graph_sender_address == "sender@example.com"
        assert settings.email.graph_client_secret == "secret"

    def test_unknown_email_method(self):
        with pytest.raises(ConfigurationError):
            parse_settings(
                {"tenantUrl": "https://t.example.com", "apiKey": "k", "emailSettings": {"method": "fax"}}
            )


class TestLoadSettings:
    """Tests for load_settings and save_settings."""

    def test_missing_file_is_unconfigured(self, tmp_path, clean_env):
        assert load_settings(tmp_path / "absent.json") is None

    def test_missing_key_is_unconfigured(self, settings_file):
        path = settings_file(None, other={"x": 1})
        assert load_settings(path) is None

    def test_reads_json_store(self, settings_file):
        path = settings_file({"tenantUrl": "tenant.example.com", "apiKey": "k"})
        settings = load_settings(path)
        assert settings.tenant_url == "https://tenant.example.com"

    def test_reads_yaml_store(self, tmp_path, clean_env):
        path = tmp_path / "settings.yaml"
        path.write_text(
            yaml.safe_dump({SETTINGS_KEY: {"tenantUrl": "https://y.example.com", "apiKey": "k"}}),
            encoding="utf-8",
        )
        assert load_settings(path).tenant_url == "https://y.example.com"

    def test_malformed_store(self, tmp_path, clean_env):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_env_path(self, settings_file, monkeypatch):
        path = settings_file({"tenantUrl": "https://env.example.com", "apiKey": "k"})
        monkeypatch.setenv("PRINTAUTH_SETTINGS", str(path))
        assert load_settings().tenant_url == "https://env.example.com"

    def test_env_overrides(self, settings_file, monkeypatch):
        path = settings_file({"tenantUrl": "https://file.example.com", "apiKey": "file-key"})
        monkeypatch.setenv("PRINTAUTH_API_KEY", "env-key")
        monkeypatch.setenv("PRINTAUTH_PIN_LENGTH", "8")
        monkeypatch.setenv("PRINTAUTH_EMAIL_METHOD", "graph")
        settings = load_settings(path)
        assert settings.tenant_url == "https://file.example.com"
        assert settings.api_key == "env-key"
        assert settings.pin_length == 8
        assert settings.email.method is EmailDeliveryMethod.GRAPH

    def test_env_only_configuration(self, tmp_path, clean_env, monkeypatch):
        monkeypatch.setenv("PRINTAUTH_TENANT_URL", "env.example.com")
        monkeypatch.setenv("PRINTAUTH_API_KEY", "k")
        assert load_settings(tmp_path / "absent.json").tenant_url == "https://env.example.com"

    def test_save_keeps_unrelated_keys(self, settings_file):
        path = settings_file(None, theme="dark")
        settings = TenantSettings(tenant_url="https://saved.example.com", api_key="k", pin_length=5)
        save_settings(settings, path)

        store = json.loads(path.read_text(encoding="utf-8"))
        assert store["theme"] == "dark"
        assert store[SETTINGS_KEY]["pinLength"] == 5
        assert load_settings(path).pin_length == 5

    def test_save_creates_parent_directories(self, tmp_path, clean_env):
        path = tmp_path / "nested" / "settings.yml"
        save_settings(TenantSettings(tenant_url="https://t.example.com", api_key="k"), path)
        assert load_settings(path).api_key == "k"

    def test_to_dict_uses_store_names(self):
        payload = settings_to_dict(TenantSettings(tenant_url="https://t.example.com", api_key="k"))
        assert payload["tenantUrl"] == "https://t.example.com"
        assert payload["shortIdLength"] == 6
        assert payload["emailSettings"]["method"] == "desktop"


class TestUpdateSettings:
    """Tests for update_settings."""

    GRAPH = {
        "method": "graph",
        "graphTenantId": "tid",
        "graphClientId": "cid",
        "graphClientSecret": "secret",
        "graphSenderAddress": "sender@example.com",
    }

    def test_keeps_values_not_updated(self, settings_file):
        path = settings_file(
            {"tenantUrl": "https://old.example.com", "apiKey": "old", "emailSettings": self.GRAPH}
        )

        update_settings({"tenantUrl": "new.example.com", "apiKey": "new", "pinLength": 6}, path)

        settings = load_settings(path)
        assert settings.tenant_url == "https://new.example.com"
        assert settings.pin_length == 6
        assert settings.email.method is EmailDeliveryMethod.GRAPH
        assert settings.email.graph_client_secret == "secret"

    def test_merges_email_fields(self, settings_file):
        path = settings_file(
            {"tenantUrl": "https://t.example.com", "apiKey": "k", "emailSettings": self.GRAPH}
        )
        update_settings({"emailSettings": {"graphSenderAddress": "other@example.com"}}, path)
        email = load_settings(path).email
        assert email.graph_sender_address == "other@example.com"
        assert email.graph_client_id == "cid"

    def test_invalid_stored_value_is_not_overwritten(self, settings_file):
        stored = {"tenantUrl": "https://t.example.com", "apiKey": "k", "pinLength": "four"}
        path = settings_file(stored, theme="dark")

        with pytest.raises(ConfigurationError):
            update_settings({"apiKey": "new"}, path)

        assert json.loads(path.read_text(encoding="utf-8")) == {SETTINGS_KEY: stored, "theme": "dark"}

    def test_corrupt_store(self, tmp_path, clean_env):
        path = tmp_path / "broken.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            update_settings({"tenantUrl": "https://t.example.com", "apiKey": "k"}, path)

    def test_env_overrides_not_persisted(self, settings_file, monkeypatch):
        path = settings_file({"tenantUrl": "https://t.example.com", "apiKey": "file-key"})
        monkeypatch.setenv("PRINTAUTH_API_KEY", "env-key")
        update_settings({"pinLength": 5}, path)
        stored = json.loads(path.read_text(encoding="utf-8"))[SETTINGS_KEY]
        assert stored["apiKey"] == "file-key"
