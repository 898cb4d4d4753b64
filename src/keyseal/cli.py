"""Command line interface for KeySeal."""

from __future__ import annotations

import getpass
import logging
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Callable

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from keyseal import __version__
from keyseal.config import KeySealConfig, load_config
from keyseal.container import api
from keyseal.crypto.secure_memory import wipe
from keyseal.errors import (
    ArmorError,
    AuthenticationFailure,
    ConfigError,
    ContainerFormatError,
    EntropySourceFailure,
    KeyDerivationFailure,
)
from keyseal.keys import KEY_TYPE
from keyseal.password_policy import (
    PasswordAssessment,
    WeakPasswordError,
    assess_password,
    enforce_password,
)

EXIT_SUCCESS = 0
EXIT_USAGE = 1
EXIT_CRYPTO = 2
EXIT_FS = 3
EXIT_CORRUPT = 4
EXIT_FATAL = 5

console = Console()
logger = logging.getLogger(__name__)


def _package_version() -> str:
    try:
        return version("keyseal")
    except PackageNotFoundError:
        return __version__


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("keyseal")
    if not verbose:
        return
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)


def _prompt_password(password_opt: str | None, *, confirm: bool = False) -> str:
    if password_opt is not None:
        return password_opt
    password = getpass.getpass("Password: ")
    if confirm and getpass.getpass("Confirm password: ") != password:
        raise click.UsageError("Passwords do not match")
    return password


def _human_size(num: float) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if num < 1024 or unit == "GB":
            return f"{num:.1f} {unit}" if unit != "B" else f"{int(num)} {unit}"
        num /= 1024
    return f"{num:.1f} GB"


def _handle_action(action: Callable[[], None]) -> int:
    try:
        action()
    except AuthenticationFailure:
        console.print("[red]Invalid password or the key file is corrupted[/red]")
        return EXIT_CRYPTO
    except ContainerFormatError:
        console.print("[red]Error: not a valid protected key file[/red]")
        return EXIT_CORRUPT
    except ArmorError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return EXIT_CORRUPT
    except (EntropySourceFailure, KeyDerivationFailure) as exc:
        console.print(f"[red]Fatal cryptographic failure:[/red] {exc}")
        return EXIT_FATAL
    except WeakPasswordError as exc:
        console.print("[red]Password rejected:[/red]")
        for problem in exc.problems:
            console.print(f"  - {problem}")
        console.print("Use --allow-weak-password to proceed anyway.")
        return EXIT_USAGE
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        return EXIT_USAGE
    except FileExistsError as exc:
        console.print(f"[red]{exc}. Use --overwrite to replace.[/red]")
        return EXIT_FS
    except FileNotFoundError as exc:
        console.print(f"[red]File not found:[/red] {exc}")
        return EXIT_FS
    except PermissionError as exc:
        console.print(f"[red]Permission denied:[/red] {exc}")
        return EXIT_FS
    except OSError as exc:
        console.print(f"[red]Filesystem error:[/red] {exc}")
        return EXIT_FS
    except ValueError as exc:
        console.print(f"[red]Invalid input:[/red] {exc}")
        return EXIT_USAGE
    except click.UsageError as exc:
        console.print(f"[red]{exc.format_message()}[/red]")
        return EXIT_USAGE
    except Exception as exc:  # noqa: BLE001
        logger.debug("Unexpected error", exc_info=True)
        console.print(f"[red]Unexpected error:[/red] {exc}")
        return EXIT_USAGE
    return EXIT_SUCCESS


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=_package_version(), prog_name="KeySeal")
@click.option("-v", "--verbose", is_flag=True, help="Log diagnostic messages to stderr.")
def cli(verbose: bool) -> None:
    """Generate ECC key pairs and keep private keys password-protected."""
    _configure_logging(verbose)


@cli.command(name="version", help="Show the KeySeal version.")
def version_command() -> None:
    console.print(f"KeySeal {_package_version()}")


@cli.command(
    help="Generate an ECC P-256 key pair and store the private key encrypted.",
    epilog="Example:\n  keyseal generate ./keys --name 'North Bank' --email bank@example.org",
)
@click.argument("out_dir", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("--name", prompt="Bank or player name", default="Example", help="Key holder name.")
@click.option("--email", prompt="E-mail address (for the user id)", help="Key holder e-mail address.")
@click.option("--password", "password_opt", help="Protection password (will prompt if omitted).")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="JSON config file.")
@click.option("--overwrite/--no-overwrite", default=False, help="Overwrite existing key files.")
@click.option("--allow-weak-password", is_flag=True, help="Accept passwords that fail the policy.")
@click.pass_context
def generate(
    ctx: click.Context,
    out_dir: Path | None,
    name: str,
    email: str,
    password_opt: str | None,
    config_path: Path | None,
    overwrite: bool,
    allow_weak_password: bool,
) -> None:
    configs: list[KeySealConfig] = []
    generated: list[api.GeneratedKeyFiles] = []

    def _run() -> None:
        config = load_config(config_path)
        configs.append(config)
        password = _prompt_password(password_opt, confirm=True)
        assessment = enforce_password(
            password,
            min_length=config.min_password_length,
            allow_weak=allow_weak_password,
        )
        for problem in assessment.problems:
            console.print(f"[yellow]Warning:[/yellow] {problem}")
        console.print("Generating ECC P-256 key pair...")
        generated.append(
            api.generate_protected_key(
                name,
                email,
                password,
                out_dir or Path(config.default_output_dir),
                config=config,
                overwrite=overwrite,
            )
        )

    code = _handle_action(_run)
    if code == EXIT_SUCCESS:
        files = generated[0]
        config = configs[0]
        table = Table(show_header=False, box=None)
        table.add_row("User ID", files.user_id)
        table.add_row("Key type", KEY_TYPE)
        table.add_row("Public key", str(files.public_path))
        table.add_row("Private key (encrypted)", str(files.private_path))
        table.add_row("Metadata", str(files.metadata_path))
        table.add_row("Generated", files.generated_at.strftime("%Y-%m-%d %H:%M:%S"))
        console.print("[bold green]Key generation summary[/bold green]")
        console.print(table)
        console.print("[yellow]Next steps:[/yellow]")
        console.print(f"1. Submit the public key file to {config.contact} for registration")
        console.print("2. Back up the encrypted private key to offline storage")
        console.print("3. Never share the private key or its password")
    ctx.exit(code)


@cli.command(
    help="Decrypt a protected private key and save it PEM-armored.",
    epilog="Example:\n  keyseal decrypt North_Bank_private_20260101_120000.bin exported.pem",
)
@click.argument("container", type=click.Path(path_type=Path))
@click.argument("output_path", required=False, type=click.Path(path_type=Path))
@click.option("--password", "password_opt", help="Decryption password (will prompt if omitted).")
@click.option("--overwrite/--no-overwrite", default=False, help="Overwrite the output if it exists.")
@click.option("--yes", "assume_yes", is_flag=True, help="Do not ask before writing the unencrypted key.")
@click.pass_context
def decrypt(
    ctx: click.Context,
    container: Path,
    output_path: Path | None,
    password_opt: str | None,
    overwrite: bool,
    assume_yes: bool,
) -> None:
    default_name = f"decrypted_private_{datetime.now().strftime('%Y%m%d_%H%M%S')}.pem"
    target = output_path or container.parent / default_name

    console.print("[yellow]Warning: the private key will be written without encryption.[/yellow]")
    if not assume_yes and not click.confirm("Export the private key in plain PEM form?", default=False):
        console.print("Export cancelled.")
        ctx.exit(EXIT_SUCCESS)
        return

    code = _handle_action(
        lambda: api.export_private_key(
            container,
            _prompt_password(password_opt),
            target,
            overwrite=overwrite,
        ),
    )
    if code == EXIT_SUCCESS:
        console.print(f"[green]Private key saved to[/green] {target}. Delete it securely after use.")
    ctx.exit(code)


@cli.command(
    help="Protect an arbitrary secret file with a password.",
    epilog="Example:\n  keyseal protect secret.der  # writes secret.der.bin",
)
@click.argument("input_path", type=click.Path(path_type=Path))
@click.argument("output_path", required=False, type=click.Path(path_type=Path))
@click.option("--password", "password_opt", help="Protection password (will prompt if omitted).")
@click.option("--overwrite/--no-overwrite", default=False, help="Overwrite the output if it exists.")
@click.pass_context
def protect(
    ctx: click.Context,
    input_path: Path,
    output_path: Path | None,
    password_opt: str | None,
    overwrite: bool,
) -> None:
    target = output_path or input_path.with_suffix(f"{input_path.suffix}.bin")
    code = _handle_action(
        lambda: api.protect_file(
            input_path,
            target,
            _prompt_password(password_opt, confirm=True),
            overwrite=overwrite,
        ),
    )
    if code == EXIT_SUCCESS:
        console.print(f"[green]Protected to[/green] {target} ({_human_size(target.stat().st_size)}).")
    ctx.exit(code)


@cli.command(
    help="Recover the raw bytes protected in a container.",
    epilog="Example:\n  keyseal unprotect secret.der.bin secret.der",
)
@click.argument("container", type=click.Path(path_type=Path))
@click.argument("output_path", required=False, type=click.Path(path_type=Path))
@click.option("--password", "password_opt", help="Decryption password (will prompt if omitted).")
@click.option("--overwrite/--no-overwrite", default=False, help="Overwrite the output if it exists.")
@click.pass_context
def unprotect(
    ctx: click.Context,
    container: Path,
    output_path: Path | None,
    password_opt: str | None,
    overwrite: bool,
) -> None:
    target = output_path or container.with_suffix(f"{container.suffix}.out")

    def _run() -> None:
        secret = api.unprotect_file(container, _prompt_password(password_opt))
        try:
            api.write_secret(target, secret, overwrite=overwrite)
        finally:
            wipe(secret)

    code = _handle_action(_run)
    if code == EXIT_SUCCESS:
        console.print(f"[green]Recovered to[/green] {target}.")
    ctx.exit(code)


@cli.command(name="check-password", help="Assess a password against the key protection policy.")
@click.option("--password", "password_opt", help="Password to assess (will prompt if omitted).")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="JSON config file.")
@click.pass_context
def check_password(ctx: click.Context, password_opt: str | None, config_path: Path | None) -> None:
    results: list[PasswordAssessment] = []

    def _run() -> None:
        config = load_config(config_path)
        results.append(
            assess_password(_prompt_password(password_opt), min_length=config.min_password_length),
        )

    code = _handle_action(_run)
    if code != EXIT_SUCCESS:
        ctx.exit(code)
        return
    assessment = results[0]
    console.print(f"Estimated entropy: {assessment.entropy_bits:.0f} bits")
    if assessment.acceptable:
        console.print("[green]Password meets the policy.[/green]")
        ctx.exit(EXIT_SUCCESS)
        return
    for problem in assessment.problems:
        console.print(f"[yellow]- {problem}[/yellow]")
    ctx.exit(EXIT_USAGE)


def main(argv: list[str] | None = None) -> int:
    try:
        return cli.main(args=argv, prog_name="keyseal", standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return EXIT_USAGE
    except click.Abort:
        console.print("Aborted.")
        return EXIT_USAGE
    except SystemExit as exc:  # noqa: TRY003
        code = exc.code if isinstance(exc.code, int) else EXIT_USAGE
        return code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
