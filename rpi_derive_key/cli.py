"""Command line interface of rpi-derive-key using Typer."""

import logging

import orjson
import typer
from rich.console import Console
from rich.markup import escape

from rpi_derive_key import __version__
from rpi_derive_key.config import DeriverConfig
from rpi_derive_key.exceptions import (
    DeriveKeyError,
    HardwareUnsupported,
    InvalidLength,
    NotInitialized,
    ReadFailure,
    WriteFailure,
)
from rpi_derive_key.models import DeviceStatus, InitOutcome, RegionStatus
from rpi_derive_key.store import SecretStore

app = typer.Typer(
    name="rpi-derive-key",
    help="Derive device-specific keys from a secret stored in Raspberry Pi OTP memory.",
    no_args_is_help=True,
)

console = Console(stderr=True)

EXIT_NOT_INITIALIZED_CHECK = 1
# Distinct exit codes per failure, checked in order.
EXIT_CODES = (
    (HardwareUnsupported, 2),
    (WriteFailure, 3),
    (NotInitialized, 4),
    (ReadFailure, 5),
    (InvalidLength, 6),
)


def _exit_code(err: DeriveKeyError) -> int:
    for exc_type, code in EXIT_CODES:
        if isinstance(err, exc_type):
            return code
    return 1


def _fail(err: DeriveKeyError) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {escape(str(err))}")
    return typer.Exit(code=_exit_code(err))


def _print_device_status(status: RegionStatus, device: DeviceStatus) -> None:
    typer.echo(f"Status: {status.value}")
    typer.echo(f"Has Customer OTP: {str(device.has_customer_otp).lower()}")
    typer.echo(f"Has Private Key: {str(device.has_private_key).lower()}")


@app.callback()
def main(
    ctx: typer.Context,
    customer_otp: bool = typer.Option(
        False,
        "--customer-otp",
        help="Use the customer-programmable OTP rows for the device secret",
    ),
    salt: str = typer.Option(None, "--salt", help="Optional salt for the HKDF algorithm"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Derive device-specific keys from a secret stored in OTP memory.

    Pass --customer-otp consistently to init and every derivation.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )
    ctx.obj = DeriverConfig.from_env(
        use_customer_otp=customer_otp or None,
        salt=salt,
    )


@app.command()
def version():
    """Show rpi-derive-key version."""
    typer.echo(f"rpi-derive-key version {__version__}")


@app.command()
def status(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Print the status as JSON"),
):
    """Print the status of the OTP registers and key derivation mechanism."""
    try:
        with SecretStore(ctx.obj) as store:
            region_status = store.status()
            device = store.device_status()
            region = store.region_name
    except DeriveKeyError as err:
        # Diagnostics only, never a failing exit code.
        console.print(f"[yellow]Status unavailable:[/yellow] {escape(str(err))}")
        return
    if json_output:
        report = {"region": region, "status": region_status.value}
        report.update(device.model_dump(mode="json"))
        typer.echo(orjson.dumps(report, option=orjson.OPT_INDENT_2).decode("utf-8"))
        return
    typer.echo(f"Region: {region}")
    _print_device_status(region_status, device)


@app.command()
def init(ctx: typer.Context):
    """Irreversibly initialize the OTP registers of the Raspberry Pi."""
    try:
        with SecretStore(ctx.obj) as store:
            outcome = store.init()
            region_status = store.status()
            device = store.device_status()
    except DeriveKeyError as err:
        raise _fail(err)
    if outcome is InitOutcome.INITIALIZED:
        console.print("[green]Device secret initialized.[/green]")
    else:
        console.print("Device secret already initialized.")
    _print_device_status(region_status, device)


@app.command()
def check(ctx: typer.Context):
    """Exit with 0 if the device secret has been initialized."""
    try:
        with SecretStore(ctx.obj) as store:
            initialized = store.check()
    except DeriveKeyError as err:
        raise _fail(err)
    if not initialized:
        console.print("Device secret has not been initialized.")
        raise typer.Exit(code=EXIT_NOT_INITIALIZED_CHECK)
    console.print("Device secret is initialized.")


@app.command("hex")
def hex_(
    ctx: typer.Context,
    size: int = typer.Argument(..., metavar="BYTES", help="The size of the key in bytes"),
    info: str = typer.Argument(..., help="Additional information used to derive the key"),
):
    """Derive a hardware-specific key using the provided information."""
    try:
        with SecretStore(ctx.obj) as store:
            key = store.derive_hex(info, size)
    except DeriveKeyError as err:
        raise _fail(err)
    typer.echo(key)


@app.command()
def uuid(
    ctx: typer.Context,
    info: str = typer.Argument(..., help="Additional information used to derive the UUID"),
):
    """Derive a UUID version 4 using the provided information."""
    try:
        with SecretStore(ctx.obj) as store:
            value = store.derive_uuid(info)
    except DeriveKeyError as err:
        raise _fail(err)
    typer.echo(value)
