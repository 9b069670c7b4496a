"""Tests for sigrange.ui.cli -- argument parsing and command handlers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from sigrange.ui.cli import _configure_logging, build_parser, main


@pytest.fixture
def files(tmp_path: Path, valid_pdf_bytes, rsa_signer):
    """(pdf_path, key_path) written to a temp directory."""
    pdf_path = tmp_path / "contract.pdf"
    pdf_path.write_bytes(valid_pdf_bytes)
    key_path = tmp_path / "alice.p12"
    key_path.write_bytes(rsa_signer.p12)
    return pdf_path, key_path


@pytest.fixture
def env_secret(monkeypatch, config_dir, fake_keyring, secret):
    monkeypatch.setenv("SIGRANGE_KEY_SECRET", secret)
    return secret


def _sign_cli(pdf_path: Path, key_path: Path, *extra: str) -> Path:
    main(["sign", str(pdf_path), "-k", str(key_path), *extra])
    return pdf_path.with_name(f"{pdf_path.stem}_signed.pdf")


# ── Parser ────────────────────────────────────────────────────────


def test_parser_sign_flags():
    args = build_parser().parse_args(
        [
            "sign",
            "a.pdf",
            "-k",
            "key.p12",
            "--digest",
            "SHA-384",
            "--placeholder-size",
            "9000",
            "--page",
            "last",
            "--rect",
            "10,10,100,40",
        ]
    )
    assert args.command == "sign"
    assert args.key == "key.p12"
    assert args.placeholder_size == 9000
    assert args.page == "last"


def test_parser_sign_requires_key():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["sign", "a.pdf"])


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 1
    assert "usage: sigrange" in capsys.readouterr().out


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])
    assert exc_info.value.code == 0
    assert capsys.readouterr().out.startswith("sigrange ")


# ── Logging setup ─────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("verbosity", "env", "expected"),
    [
        (0, None, logging.WARNING),
        (1, None, logging.INFO),
        (2, None, logging.DEBUG),
        (0, "debug", logging.DEBUG),
        (1, "ERROR", logging.INFO),
    ],
)
def test_configure_logging_level(monkeypatch, verbosity, env, expected):
    if env is None:
        monkeypatch.delenv("SIGRANGE_LOG_LEVEL", raising=False)
    else:
        monkeypatch.setenv("SIGRANGE_LOG_LEVEL", env)
    with patch("sigrange.ui.cli.logging.basicConfig") as mock_basic:
        _configure_logging(verbosity)
    assert mock_basic.call_args.kwargs["level"] == expected


def test_configure_logging_invalid_env(monkeypatch, capsys):
    monkeypatch.setenv("SIGRANGE_LOG_LEVEL", "chatty")
    with patch("sigrange.ui.cli.logging.basicConfig") as mock_basic:
        _configure_logging(0)
    assert mock_basic.call_args.kwargs["level"] == logging.WARNING
    assert "SIGRANGE_LOG_LEVEL" in capsys.readouterr().err


# ── sign ──────────────────────────────────────────────────────────


def test_sign_default_output(files, env_secret, capsys):
    pdf_path, key_path = files
    out = _sign_cli(pdf_path, key_path, "--reason", "Approved")

    assert out.exists()
    assert out.read_bytes().startswith(pdf_path.read_bytes())
    assert "OK -> contract_signed.pdf" in capsys.readouterr().out


def test_sign_explicit_output(files, env_secret, tmp_path):
    pdf_path, key_path = files
    out = tmp_path / "custom.pdf"
    main(["sign", str(pdf_path), "-k", str(key_path), "-o", str(out)])
    assert out.exists()


def test_sign_visible(files, env_secret, capsys):
    pdf_path, key_path = files
    _sign_cli(pdf_path, key_path, "--page", "1", "--rect", "50,50,200,60")
    assert "Visible field on page 1" in capsys.readouterr().out


def test_sign_page_without_rect(files, env_secret, capsys):
    pdf_path, key_path = files
    with pytest.raises(SystemExit) as exc_info:
        _sign_cli(pdf_path, key_path, "--page", "2")
    assert exc_info.value.code == 1
    assert "--page needs --rect" in capsys.readouterr().err


def test_sign_bad_rect(files, env_secret, capsys):
    pdf_path, key_path = files
    with pytest.raises(SystemExit):
        _sign_cli(pdf_path, key_path, "--rect", "1,2,3")
    assert "Invalid rectangle" in capsys.readouterr().err


def test_sign_missing_pdf(tmp_path, env_secret, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["sign", str(tmp_path / "nope.pdf"), "-k", str(tmp_path / "k.p12")])
    assert exc_info.value.code == 1
    assert "PDF not found" in capsys.readouterr().err


def test_sign_missing_key(files, env_secret, tmp_path, capsys):
    pdf_path, _ = files
    with pytest.raises(SystemExit):
        main(["sign", str(pdf_path), "-k", str(tmp_path / "missing.p12")])
    assert "key container not found" in capsys.readouterr().err


def test_sign_wrong_secret(files, config_dir, fake_keyring, monkeypatch, capsys):
    pdf_path, key_path = files
    monkeypatch.setenv("SIGRANGE_KEY_SECRET", "wrong")
    with pytest.raises(SystemExit) as exc_info:
        _sign_cli(pdf_path, key_path)
    assert exc_info.value.code == 1
    err = capsys.readouterr().err
    assert "FAILED" in err
    assert "SIGRANGE_KEY_SECRET" in err
    assert not pdf_path.with_name("contract_signed.pdf").exists()


def test_sign_uses_keychain_secret(files, config_dir, fake_keyring, secret):
    from sigrange.config import save_key_secret

    pdf_path, key_path = files
    save_key_secret(key_path, secret)
    with patch("sigrange.ui.cli.sign.prompt_secret") as mock_prompt:
        out = _sign_cli(pdf_path, key_path)
    mock_prompt.assert_not_called()
    assert out.exists()


def test_sign_prompts_and_offers_save(files, config_dir, fake_keyring, secret, capsys):
    pdf_path, key_path = files
    with (
        patch("sigrange.ui.cli.sign.prompt_secret", return_value=secret),
        patch("sigrange.ui.cli.sign.confirm_choice", return_value=True),
    ):
        out = _sign_cli(pdf_path, key_path)
    assert out.exists()
    assert fake_keyring.get_password("sigrange", str(key_path.resolve())) == secret
    assert "Key password saved" in capsys.readouterr().out


def test_sign_prompt_declined_save(files, config_dir, fake_keyring, secret):
    pdf_path, key_path = files
    with (
        patch("sigrange.ui.cli.sign.prompt_secret", return_value=secret),
        patch("sigrange.ui.cli.sign.confirm_choice", return_value=False),
    ):
        _sign_cli(pdf_path, key_path)
    assert fake_keyring.store == {}


def test_sign_prompt_cancelled(files, config_dir, fake_keyring, capsys):
    pdf_path, key_path = files
    with (
        patch("sigrange.ui.cli.sign.prompt_secret", return_value=None),
        pytest.raises(SystemExit) as exc_info,
    ):
        _sign_cli(pdf_path, key_path)
    assert exc_info.value.code == 1
    assert "cancelled" in capsys.readouterr().err


def test_sign_flags_override_config(files, env_secret):
    from sigrange.config import save_signing_defaults
    from sigrange.core.pdf import list_signature_fields

    save_signing_defaults(reason="From config", location="Config City")
    pdf_path, key_path = files
    out = _sign_cli(pdf_path, key_path, "--reason", "From flag")
    (sig,) = list_signature_fields(out.read_bytes())
    assert sig.reason == "From flag"
    assert sig.location == "Config City"


# ── check ─────────────────────────────────────────────────────────


def test_check_valid(files, env_secret, capsys):
    pdf_path, key_path = files
    out = _sign_cli(pdf_path, key_path)
    capsys.readouterr()

    main(["check", str(out)])
    stdout = capsys.readouterr().out
    assert "VALID: digest and signature verified" in stdout
    assert "RESULT: Signature VALID" in stdout


def test_check_two_signatures(files, env_secret, capsys):
    pdf_path, key_path = files
    once = _sign_cli(pdf_path, key_path)
    twice = _sign_cli(once, key_path)
    capsys.readouterr()

    main(["check", str(twice)])
    stdout = capsys.readouterr().out
    assert "Signature 1/2 (Alice Signer)" in stdout
    assert "Coverage:  partial" in stdout
    assert "RESULT: All 2 signatures VALID" in stdout


def test_check_tampered(files, env_secret, capsys):
    pdf_path, key_path = files
    out = _sign_cli(pdf_path, key_path)
    data = bytearray(out.read_bytes())
    data[10] ^= 0x01
    out.write_bytes(bytes(data))
    capsys.readouterr()

    with pytest.raises(SystemExit) as exc_info:
        main(["check", str(out)])
    assert exc_info.value.code == 1
    stdout = capsys.readouterr().out
    assert "INVALID: digest mismatch" in stdout
    assert "RESULT: 1 of 1 signature(s) FAILED" in stdout


def test_check_unsigned(files, config_dir, capsys):
    pdf_path, _ = files
    with pytest.raises(SystemExit) as exc_info:
        main(["check", str(pdf_path)])
    assert exc_info.value.code == 1
    assert "No signatures found" in capsys.readouterr().out


def test_check_not_a_pdf(tmp_path, config_dir, capsys):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"just text")
    with pytest.raises(SystemExit):
        main(["check", str(path)])
    assert "ERROR: Not a PDF" in capsys.readouterr().err


def test_check_json(files, env_secret, capsys):
    pdf_path, key_path = files
    out = _sign_cli(pdf_path, key_path)
    capsys.readouterr()

    main(["check", str(out), "--json"])
    data = json.loads(capsys.readouterr().out)
    assert len(data) == 1
    assert data[0]["is_valid"] is True
    assert data[0]["signer_name"] == "Alice Signer"


def test_check_json_unsigned_exits_1(files, config_dir, capsys):
    pdf_path, _ = files
    with pytest.raises(SystemExit):
        main(["check", str(pdf_path), "--json"])
    assert json.loads(capsys.readouterr().out) == []


def test_check_with_trust_anchor(files, env_secret, rsa_signer, tmp_path, capsys):
    pdf_path, key_path = files
    out = _sign_cli(pdf_path, key_path)
    anchor = tmp_path / "anchor.pem"
    anchor.write_bytes(rsa_signer.cert_pem)
    capsys.readouterr()

    main(["check", str(out), "--trust-anchor", str(anchor)])
    assert "self-signed, trusted" in capsys.readouterr().out


def test_check_missing_trust_anchor(files, env_secret, tmp_path, capsys):
    pdf_path, key_path = files
    out = _sign_cli(pdf_path, key_path)
    with pytest.raises(SystemExit):
        main(["check", str(out), "--trust-anchor", str(tmp_path / "missing.pem")])
    assert "Cannot read trust anchor" in capsys.readouterr().err


# ── info / count ──────────────────────────────────────────────────


def test_info(files, env_secret, capsys):
    pdf_path, key_path = files
    out = _sign_cli(pdf_path, key_path, "--reason", "Reviewed", "--name", "Alice")
    capsys.readouterr()

    main(["info", str(out)])
    stdout = capsys.readouterr().out
    assert "contract_signed.pdf: 1 signature field(s)" in stdout
    assert "Reason:    Reviewed" in stdout
    assert "Name:      Alice" in stdout
    assert "Signer:    Alice Signer" in stdout
    assert "Algorithm: RSA with SHA-256" in stdout


def test_info_unsigned(files, capsys):
    pdf_path, _ = files
    main(["info", str(pdf_path)])
    assert "contract.pdf: 0 signature field(s)" in capsys.readouterr().out


def test_count(files, env_secret, capsys):
    pdf_path, key_path = files
    out = _sign_cli(_sign_cli(pdf_path, key_path), key_path)
    capsys.readouterr()

    main(["count", str(out)])
    assert capsys.readouterr().out.strip() == "2"


@pytest.mark.parametrize("command", ["info", "count"])
def test_inspection_rejects_non_pdf(tmp_path, command, capsys):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"just text /Type /Sig /ByteRange [0 1 2 3]")
    with pytest.raises(SystemExit) as exc:
        main([command, str(path)])
    assert exc.value.code == 1
    captured = capsys.readouterr()
    assert "ERROR: Not a PDF" in captured.err
    assert captured.out == ""


# ── reset ─────────────────────────────────────────────────────────


def test_reset(config_dir, capsys):
    from sigrange.config import save_signing_defaults

    _, config_file = config_dir
    save_signing_defaults(reason="temp")
    main(["reset"])
    assert not config_file.exists()
    assert "Configuration cleared" in capsys.readouterr().out
