"""keygate CLI - access-gated message encryption."""

import asyncio
import json
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..utils.logging import console

app = typer.Typer(
    name="keygate",
    help="Encrypt direct messages so only their recipients can read them.",
    no_args_is_help=True,
)

err_console = Console(stderr=True)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error: {message}[/red]")
    raise typer.Exit(1)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (default: LOG_LEVEL or INFO)",
    ),
):
    """Configure logging for every command."""
    from ..config import get_settings
    from ..utils.logging import setup_logging

    settings = get_settings()
    setup_logging(level=log_level or settings.log_level, log_file=settings.log_file)


def _load_signer(key_file: Optional[Path]):
    from ..config import get_settings
    from ..signing import LocalWalletSigner

    key_file = key_file or get_settings().wallet_key_file
    if not key_file.exists():
        _fail(f"Wallet key not found: {key_file} (run 'keygate keygen' first)")
    try:
        return LocalWalletSigner.from_file(key_file)
    except ValueError as e:
        _fail(f"Could not load wallet key {key_file}: {e}")


def _make_client(service_url: Optional[str], local_state: Optional[Path]):
    from ..exceptions import ConfigurationError
    from ..keyrelease import HttpKeyReleaseClient, LocalKeyReleaseService

    if local_state is not None:
        try:
            return LocalKeyReleaseService.from_state_file(local_state)
        except ConfigurationError as e:
            _fail(str(e))
    return HttpKeyReleaseClient(base_url=service_url)


@app.command()
def keygen(
    key_file: Optional[Path] = typer.Option(
        None,
        "--key-file", "-k",
        help="Where to write the wallet key (default: ~/.config/keygate/wallet.key)",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing key file",
    ),
):
    """Generate a local wallet key and print its address."""
    from ..config import get_settings
    from ..signing import LocalWalletSigner

    key_file = key_file or get_settings().wallet_key_file
    if key_file.exists() and not force:
        _fail(f"Key file already exists: {key_file} (use --force to overwrite)")

    signer = LocalWalletSigner.generate()
    signer.save(key_file)

    console.print(f"[green]✓ Wallet key written to {key_file}[/green]")
    console.print(f"Address: {signer.address}")


@app.command()
def policy(
    recipients: List[str] = typer.Argument(..., help="Recipient DIDs or 0x addresses"),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Fail on recipients from unsupported networks instead of skipping them",
    ),
):
    """Print the access policy for a set of recipients as JSON."""
    from ..exceptions import PolicyError
    from ..policy import AccessPolicyBuilder

    try:
        access_policy = AccessPolicyBuilder(strict=strict).build(recipients)
    except PolicyError as e:
        _fail(str(e))

    typer.echo(json.dumps(access_policy.to_list(), indent=2))


@app.command()
def inspect(
    payload_file: Path = typer.Argument(..., help="Encrypted payload JSON file"),
):
    """Show who can decrypt an encrypted payload."""
    from ..exceptions import DecodeError, PolicyError
    from ..models import AccessCondition, EncryptedPayload
    from ..policy import parse_policy

    if not payload_file.exists():
        _fail(f"File not found: {payload_file}")

    try:
        payload = EncryptedPayload.from_json(payload_file.read_text(encoding="utf-8"))
        access_policy = parse_policy(payload.access_control_conditions)
    except (DecodeError, PolicyError) as e:
        _fail(str(e))

    table = Table(title=f"Access policy ({len(access_policy.conditions)} condition(s))")
    table.add_column("#", style="dim")
    table.add_column("Element")
    table.add_column("Chain")
    table.add_column("Test")

    for index, element in enumerate(access_policy, start=1):
        if isinstance(element, AccessCondition):
            test = element.return_value_test
            parameter = ", ".join(element.parameters)
            table.add_row(str(index), "condition", element.chain, f"{parameter} {test.comparator} {test.value}")
        else:
            table.add_row(str(index), f"[bold]{element.operator.value}[/bold]", "", "")

    console.print(table)


@app.command()
def encrypt(
    recipients: List[str] = typer.Argument(..., help="Recipient DIDs or 0x addresses"),
    message: str = typer.Option(..., "--message", "-m", help="Message to encrypt"),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Write the payload here (default: stdout)",
    ),
    key_file: Optional[Path] = typer.Option(None, "--key-file", "-k", help="Wallet key file"),
    service_url: Optional[str] = typer.Option(None, "--service-url", help="Key-release service URL"),
    local_state: Optional[Path] = typer.Option(
        None,
        "--local-state",
        help="Use an in-process key-release service with this state file",
    ),
):
    """Encrypt a message for a set of recipients."""
    from ..encryption import EncryptionService
    from ..exceptions import KeygateError
    from ..session import AuthSession

    signer = _load_signer(key_file)
    client = _make_client(service_url, local_state)

    async def run():
        session = AuthSession(client)
        try:
            await session.connect()
            await session.generate_signature(signer, signer.address)
            return await EncryptionService(client).encrypt_for_recipients(
                session, recipients, message
            )
        finally:
            await client.close()

    try:
        payload = asyncio.run(run())
    except KeygateError as e:
        _fail(f"{e.kind}: {e}")

    if output:
        output.write_text(payload.to_json(), encoding="utf-8")
        console.print(f"[green]✓ Encrypted payload written to {output}[/green]")
    else:
        typer.echo(payload.to_json())


@app.command()
def decrypt(
    payload_file: Path = typer.Argument(..., help="Encrypted payload JSON file"),
    key_file: Optional[Path] = typer.Option(None, "--key-file", "-k", help="Wallet key file"),
    service_url: Optional[str] = typer.Option(None, "--service-url", help="Key-release service URL"),
    local_state: Optional[Path] = typer.Option(
        None,
        "--local-state",
        help="Use an in-process key-release service with this state file",
    ),
):
    """Decrypt a payload with the local wallet's identity."""
    from ..decryption import DecryptionService
    from ..exceptions import KeygateError
    from ..models import EncryptedPayload
    from ..session import AuthSession

    if not payload_file.exists():
        _fail(f"File not found: {payload_file}")

    signer = _load_signer(key_file)

    try:
        payload = EncryptedPayload.from_json(payload_file.read_text(encoding="utf-8"))
    except KeygateError as e:
        _fail(str(e))

    client = _make_client(service_url, local_state)

    async def run():
        session = AuthSession(client)
        try:
            await session.connect()
            await session.generate_signature(signer, signer.address)
            return await DecryptionService(client).decrypt(session, payload)
        finally:
            await client.close()

    try:
        plaintext = asyncio.run(run())
    except KeygateError as e:
        _fail(f"{e.kind}: {e}")

    typer.echo(plaintext)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
