from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import click
from click.testing import CliRunner
from cryptography.hazmat.primitives import serialization

from keyseal.cli import (
    EXIT_CORRUPT,
    EXIT_CRYPTO,
    EXIT_FATAL,
    EXIT_FS,
    EXIT_SUCCESS,
    EXIT_USAGE,
    cli,
    main,
)
from keyseal.container import core
from keyseal.errors import EntropySourceFailure

PASSWORD = "Harbour-Lantern-Quill-42"


def _generate(runner: CliRunner, out_dir: Path, *extra: str) -> tuple[int, str]:
    result = runner.invoke(
        cli,
        [
            "generate",
            str(out_dir),
            "--name",
            "North Bank",
            "--email",
            "bank@example.org",
            "--password",
            PASSWORD,
            *extra,
        ],
    )
    return result.exit_code, result.output


def _private_file(out_dir: Path) -> Path:
    (path,) = out_dir.glob("North_Bank_private_*.bin")
    return path


def test_generate_then_decrypt(tmp_path: Path) -> None:
    runner = CliRunner()
    code, output = _generate(runner, tmp_path)
    assert code == EXIT_SUCCESS, output
    assert "North Bank <bank@example.org>" in output

    (public_path,) = tmp_path.glob("North_Bank_public_*.pem")
    (metadata_path,) = tmp_path.glob("North_Bank_public_*.json")
    assert json.loads(metadata_path.read_text(encoding="utf-8"))["holder_name"] == "North Bank"

    exported = tmp_path / "exported.pem"
    result = runner.invoke(
        cli,
        ["decrypt", str(_private_file(tmp_path)), str(exported), "--password", PASSWORD, "--yes"],
    )
    assert result.exit_code == EXIT_SUCCESS, result.output

    private_key = serialization.load_pem_private_key(exported.read_bytes(), password=None)
    public_key = serialization.load_pem_public_key(public_path.read_bytes())
    assert private_key.public_key().public_numbers() == public_key.public_numbers()


def test_decrypt_can_be_declined(tmp_path: Path) -> None:
    runner = CliRunner()
    _generate(runner, tmp_path)
    exported = tmp_path / "exported.pem"

    result = runner.invoke(
        cli,
        ["decrypt", str(_private_file(tmp_path)), str(exported), "--password", PASSWORD],
        input="n\n",
    )

    assert result.exit_code == EXIT_SUCCESS
    assert "cancelled" in result.output
    assert not exported.exists()


def test_decrypt_wrong_password(tmp_path: Path) -> None:
    runner = CliRunner()
    _generate(runner, tmp_path)
    result = runner.invoke(
        cli,
        ["decrypt", str(_private_file(tmp_path)), str(tmp_path / "x.pem"), "--password", "nope", "--yes"],
    )
    assert result.exit_code == EXIT_CRYPTO
    assert not (tmp_path / "x.pem").exists()


def test_decrypt_truncated_file(tmp_path: Path) -> None:
    runner = CliRunner()
    truncated = tmp_path / "truncated.bin"
    truncated.write_bytes(b"\x00" * 10)
    result = runner.invoke(cli, ["decrypt", str(truncated), "--password", PASSWORD, "--yes"])
    assert result.exit_code == EXIT_CORRUPT
    assert "not a valid protected key file" in result.output


def test_decrypt_non_key_payload(tmp_path: Path) -> None:
    runner = CliRunner()
    source = tmp_path / "note.txt"
    source.write_bytes(b"hello-secret-key-material")
    runner.invoke(cli, ["protect", str(source), "--password", PASSWORD])

    result = runner.invoke(
        cli,
        ["decrypt", str(tmp_path / "note.txt.bin"), str(tmp_path / "out.pem"), "--password", PASSWORD, "--yes"],
    )
    assert result.exit_code == EXIT_CORRUPT


def test_generate_rejects_weak_password(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["generate", str(tmp_path), "--name", "Bank", "--email", "b@example.org", "--password", "short"],
    )
    assert result.exit_code == EXIT_USAGE
    assert list(tmp_path.iterdir()) == []

    result = runner.invoke(
        cli,
        [
            "generate",
            str(tmp_path),
            "--name",
            "Bank",
            "--email",
            "b@example.org",
            "--password",
            "short",
            "--allow-weak-password",
        ],
    )
    assert result.exit_code == EXIT_SUCCESS
    assert "Warning" in result.output


def test_generate_rejects_bad_email(tmp_path: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["generate", str(tmp_path), "--name", "Bank", "--email", "nobody", "--password", PASSWORD],
    )
    assert result.exit_code == EXIT_USAGE


def test_generate_uses_config(tmp_path: Path) -> None:
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"contact": "registry@abu.example", "notes": "custom"}), encoding="utf-8")
    out_dir = tmp_path / "keys"

    code, output = _generate(CliRunner(), out_dir, "--config", str(config))

    assert code == EXIT_SUCCESS, output
    assert "registry@abu.example" in output
    (metadata_path,) = out_dir.glob("*.json")
    assert json.loads(metadata_path.read_text(encoding="utf-8"))["notes"] == "custom"


def test_generate_invalid_config(tmp_path: Path) -> None:
    config = tmp_path / "config.json"
    config.write_text("{broken", encoding="utf-8")
    code, _output = _generate(CliRunner(), tmp_path / "keys", "--config", str(config))
    assert code == EXIT_USAGE


def test_generate_entropy_failure(tmp_path: Path, monkeypatch) -> None:
    class DeadSource:
        def token(self, length: int) -> bytes:
            raise EntropySourceFailure("no entropy")

    monkeypatch.setattr(core, "_DEFAULT_SERVICE", core.ProtectionService(random_source=DeadSource()))
    code, output = _generate(CliRunner(), tmp_path)
    assert code == EXIT_FATAL
    assert not list(tmp_path.glob("*.bin"))


def test_protect_unprotect_roundtrip(tmp_path: Path) -> None:
    runner = CliRunner()
    source = tmp_path / "secret.der"
    source.write_bytes(b"\x30\x82raw-key")

    result = runner.invoke(cli, ["protect", str(source), "--password", PASSWORD])
    assert result.exit_code == EXIT_SUCCESS, result.output
    container = tmp_path / "secret.der.bin"
    assert container.exists()

    result = runner.invoke(cli, ["unprotect", str(container), "--password", PASSWORD])
    assert result.exit_code == EXIT_SUCCESS, result.output
    assert (tmp_path / "secret.der.bin.out").read_bytes() == b"\x30\x82raw-key"


def test_unprotect_refuses_overwrite(tmp_path: Path) -> None:
    runner = CliRunner()
    source = tmp_path / "secret.der"
    source.write_bytes(b"data")
    runner.invoke(cli, ["protect", str(source), "--password", PASSWORD])

    result = runner.invoke(cli, ["unprotect", str(tmp_path / "secret.der.bin"), str(source), "--password", PASSWORD])
    assert result.exit_code == EXIT_FS

    result = runner.invoke(
        cli,
        ["unprotect", str(tmp_path / "secret.der.bin"), str(source), "--password", PASSWORD, "--overwrite"],
    )
    assert result.exit_code == EXIT_SUCCESS


def test_missing_input(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["unprotect", str(tmp_path / "absent.bin"), "--password", PASSWORD])
    assert result.exit_code == EXIT_FS


def test_prompted_password_must_match(tmp_path: Path, monkeypatch) -> None:
    answers = iter(["first-password-value", "second-password-value"])
    monkeypatch.setattr("keyseal.cli.getpass.getpass", lambda prompt="": next(answers))
    source = tmp_path / "s.bin"
    source.write_bytes(b"data")

    result = CliRunner().invoke(cli, ["protect", str(source)])

    assert result.exit_code == EXIT_USAGE
    assert not (tmp_path / "s.bin.bin").exists()


def test_check_password() -> None:
    runner = CliRunner()
    assert runner.invoke(cli, ["check-password", "--password", PASSWORD]).exit_code == EXIT_SUCCESS
    weak = runner.invoke(cli, ["check-password", "--password", "password123"])
    assert weak.exit_code == EXIT_USAGE
    assert "breached" in weak.output


def test_verbose_flag(tmp_path: Path) -> None:
    source = tmp_path / "s.bin"
    source.write_bytes(b"data")
    result = CliRunner().invoke(cli, ["-v", "protect", str(source), "--password", PASSWORD])
    assert result.exit_code == EXIT_SUCCESS
    assert PASSWORD not in result.output


def test_main_returns_exit_code(tmp_path: Path) -> None:
    truncated = tmp_path / "t.bin"
    truncated.write_bytes(b"\x00")
    assert main(["unprotect", str(truncated), "--password", "pw"]) == EXIT_CORRUPT


def test_main_reports_missing_argument_as_usage_error() -> None:
    assert main(["decrypt"]) == EXIT_USAGE


def test_main_reports_unknown_option_as_usage_error() -> None:
    assert main(["protect", "--no-such-option"]) == EXIT_USAGE


def test_main_interrupted_prompt_is_usage_error(tmp_path: Path, monkeypatch) -> None:
    def interrupted(*args, **kwargs):
        raise click.Abort()

    monkeypatch.setattr(click, "confirm", interrupted)
    target = tmp_path / "out.pem"
    assert main(["decrypt", str(tmp_path / "key.bin"), str(target)]) == EXIT_USAGE
    assert not target.exists()


def test_generate_summary_shows_recorded_time(tmp_path: Path) -> None:
    code, output = _generate(CliRunner(), tmp_path)
    assert code == EXIT_SUCCESS, output

    (metadata_path,) = tmp_path.glob("North_Bank_public_*.json")
    generated = datetime.fromisoformat(json.loads(metadata_path.read_text(encoding="utf-8"))["generation_date"])
    assert generated.strftime("%Y-%m-%d %H:%M:%S") in output
    assert generated.strftime("%Y%m%d_%H%M%S") in _private_file(tmp_path).name
