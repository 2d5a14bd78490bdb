"""Command line interface for managing print credentials."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import typer

from . import commands
from .config import ConfigurationError, EmailDeliveryMethod, update_settings
from .csv_import import read_csv_file

app = typer.Typer(help="Manage printer PINs, one-time passcodes and card IDs for SAFEQ Cloud users.")
settings_app = typer.Typer(help="Inspect or change the stored tenant settings.")
users_app = typer.Typer(help="List users and update individual credentials.")
generate_app = typer.Typer(help="Generate a credential for a single user.")
bulk_app = typer.Typer(help="Run credential operations for every user in a CSV file.")
email_app = typer.Typer(help="Deliver prepared credential emails via Microsoft Graph.")
app.add_typer(settings_app, name="settings")
app.add_typer(users_app, name="users")
app.add_typer(generate_app, name="generate")
app.add_typer(bulk_app, name="bulk")
app.add_typer(email_app, name="email")

_SECRET_KEYS = ("apiKey", "graphClientSecret")

ConfigOption = typer.Option(
    None, "--config", help="Path to a specific settings file (overrides default)."
)
ProviderOption = typer.Option(None, "--provider-id", help="Authentication provider ID.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log HTTP activity."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _run(action: Callable[[], Any]) -> Any:
    try:
        return action()
    except commands.CommandError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1)


def _mask(payload: Any) -> Any:
    if isinstance(payload, dict):
        return {
            key: ("********" if key in _SECRET_KEYS and value else _mask(value))
            for key, value in payload.items()
        }
    return payload


def _load_csv_users(csv_path: Path) -> List[dict]:
    parsed = read_csv_file(csv_path)
    for warning in parsed.warnings:
        typer.echo(f"Note: {warning}", err=True)
    if parsed.errors:
        for error in parsed.errors:
            typer.echo(f"Error: {error}")
        raise typer.Exit(code=1)

    valid = parsed.valid_users
    skipped = len(parsed.users) - len(valid)
    if skipped:
        typer.echo(f"Note: skipping {skipped} invalid row(s)", err=True)
    if not valid:
        typer.echo("Error: the CSV file contains no valid users")
        raise typer.Exit(code=1)
    return [user.to_dict() for user in valid]


# ---------------------------------------------------------------------- #
# settings                                                               #
# ---------------------------------------------------------------------- #
@settings_app.command("show")
def show_settings(
    show_secrets: bool = typer.Option(False, "--show-secrets", help="Print API key and client secret."),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Display the stored settings."""

    payload = _run(lambda: commands.get_settings(config_path))
    if payload is None:
        typer.echo("Settings are not configured yet.")
        raise typer.Exit(code=0)
    _echo_json(payload if show_secrets else _mask(payload))


@settings_app.command("configure")
def configure(
    tenant_url: str = typer.Option(..., "--tenant-url", prompt=True, help="Tenant address."),
    api_key: str = typer.Option(..., "--api-key", prompt=True, hide_input=True, help="API key."),
    pin_length: Optional[int] = typer.Option(None, "--pin-length", min=0),
    short_id_length: Optional[int] = typer.Option(None, "--short-id-length", min=0),
    exclude_characters: Optional[str] = typer.Option(
        None, "--exclude", help="Characters never used in generated short IDs."
    ),
    email_method: Optional[EmailDeliveryMethod] = typer.Option(None, "--email-method"),
    graph_tenant_id: Optional[str] = typer.Option(None, "--graph-tenant-id"),
    graph_client_id: Optional[str] = typer.Option(None, "--graph-client-id"),
    graph_client_secret: Optional[str] = typer.Option(None, "--graph-client-secret"),
    graph_sender: Optional[str] = typer.Option(None, "--graph-sender"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Create or update the stored tenant settings.

    Stored values that are not passed as options are kept.
    """

    updates: Dict[str, Any] = {"tenantUrl": tenant_url, "apiKey": api_key}
    if pin_length is not None:
        updates["pinLength"] = pin_length
    if short_id_length is not None:
        updates["shortIdLength"] = short_id_length
    if exclude_characters is not None:
        updates["otpExcludeCharacters"] = exclude_characters

    email: Dict[str, Any] = {}
    if email_method is not None:
        email["method"] = email_method.value
    for key, value in (
        ("graphTenantId", graph_tenant_id),
        ("graphClientId", graph_client_id),
        ("graphClientSecret", graph_client_secret),
        ("graphSenderAddress", graph_sender),
    ):
        if value is not None:
            email[key] = value
    if email:
        updates["emailSettings"] = email

    try:
        target = update_settings(updates, config_path)
    except (ConfigurationError, OSError) as exc:
        typer.echo(f"Error: failed to save settings: {exc}")
        raise typer.Exit(code=1)
    typer.echo(f"Saved settings to '{target}'.")


# ---------------------------------------------------------------------- #
# users                                                                  #
# ---------------------------------------------------------------------- #
@users_app.command("list")
def list_users(
    provider_id: Optional[int] = ProviderOption,
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """List users of the first provider, or of --provider-id."""

    if provider_id is None:
        payload = _run(lambda: commands.list_users(config_path))
    else:
        payload = _run(lambda: commands.list_users_for_provider(provider_id, config_path))
    _echo_json(payload)


@users_app.command("providers")
def list_providers(config_path: Optional[Path] = ConfigOption) -> None:
    """List the account's authentication providers."""

    _echo_json(_run(lambda: commands.list_auth_providers(config_path)))


@users_app.command("set-card")
def set_card(
    username: str = typer.Argument(..., help="User to update."),
    card_id: Optional[str] = typer.Argument(None, help="Card ID; omit to remove it."),
    provider_id: Optional[int] = ProviderOption,
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Assign or remove a user's card ID."""

    _echo_json(_run(lambda: commands.update_user_card(username, provider_id, card_id, config_path)))


@users_app.command("set-short-id")
def set_short_id(
    username: str = typer.Argument(..., help="User to update."),
    short_id: Optional[str] = typer.Argument(None, help="Short ID; omit to remove it."),
    provider_id: Optional[int] = ProviderOption,
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Assign or remove a user's short ID."""

    _echo_json(
        _run(lambda: commands.update_user_short_id(username, provider_id, short_id, config_path))
    )


@users_app.command("set-pin")
def set_pin(
    username: str = typer.Argument(..., help="User to update."),
    pin: Optional[str] = typer.Argument(None, help="PIN; omit to remove it."),
    provider_id: Optional[int] = ProviderOption,
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Assign or remove a user's PIN."""

    _echo_json(_run(lambda: commands.update_user_pin(username, provider_id, pin, config_path)))


# ---------------------------------------------------------------------- #
# generate                                                               #
# ---------------------------------------------------------------------- #
@generate_app.command("pin")
def generate_pin(
    username: str = typer.Argument(..., help="User to receive a new PIN."),
    provider_id: Optional[int] = ProviderOption,
    config_path: Optional[Path] = ConfigOption,
) -> None:
    _echo_json(_run(lambda: commands.generate_user_pin(username, provider_id, config_path)))


@generate_app.command("otp")
def generate_otp(
    username: str = typer.Argument(..., help="User to receive a new one-time passcode."),
    provider_id: Optional[int] = ProviderOption,
    config_path: Optional[Path] = ConfigOption,
) -> None:
    _echo_json(_run(lambda: commands.generate_user_otp(username, provider_id, config_path)))


# ---------------------------------------------------------------------- #
# bulk                                                                   #
# ---------------------------------------------------------------------- #
CsvOption = typer.Option(..., "--csv", exists=True, dir_okay=False, help="CSV file with users.")


@bulk_app.command("pins")
def bulk_pins(csv_path: Path = CsvOption, config_path: Optional[Path] = ConfigOption) -> None:
    """Generate a new PIN for every user in the CSV file."""

    users = _load_csv_users(csv_path)
    _echo_json(_run(lambda: commands.generate_bulk_pins(users, config_path)))


@bulk_app.command("otps")
def bulk_otps(csv_path: Path = CsvOption, config_path: Optional[Path] = ConfigOption) -> None:
    """Generate a new one-time passcode for every user in the CSV file."""

    users = _load_csv_users(csv_path)
    _echo_json(_run(lambda: commands.generate_bulk_otps(users, config_path)))


@bulk_app.command("create")
def bulk_create(
    csv_path: Path = CsvOption,
    auto_pin: bool = typer.Option(False, "--auto-pin", help="Generate PINs for users without one."),
    auto_otp: bool = typer.Option(False, "--auto-otp", help="Generate OTPs for users without one."),
    provider_id: Optional[int] = typer.Option(
        None, "--provider-id", help="Provider for rows without a provider column value."
    ),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Create every user in the CSV file."""

    users = _load_csv_users(csv_path)
    _echo_json(
        _run(
            lambda: commands.create_users(
                users, auto_pin, auto_otp, config_path, default_provider_id=provider_id
            )
        )
    )


# ---------------------------------------------------------------------- #
# email                                                                  #
# ---------------------------------------------------------------------- #
@email_app.command("send")
def send_emails(
    messages_path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="JSON file with a list of prepared messages."
    ),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Send prepared messages (to, subject, body, contentType) through Graph."""

    try:
        with messages_path.open("r", encoding="utf-8") as handle:
            messages = json.load(handle)
    except ValueError as exc:
        typer.echo(f"Error: {messages_path} is not valid JSON: {exc}")
        raise typer.Exit(code=1)
    if not isinstance(messages, list):
        typer.echo("Error: the messages file must contain a JSON list.")
        raise typer.Exit(code=1)

    _echo_json(_run(lambda: commands.send_emails(messages, config_path)))


def run():
    app()


if __name__ == "__main__":
    run()
