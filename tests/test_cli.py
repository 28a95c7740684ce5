"""Tests for the CLI module."""

from contextlib import contextmanager

import pytest
from click.testing import CliRunner
from conftest import FakeMailbox, make_message

import imap_cleaner.cli as cli_module
from imap_cleaner.cli import cli
from imap_cleaner.errors import AuthenticationError

LOGIN = ["--email", "me@example.com", "--password", "secret"]


@pytest.fixture
def runner():
    return CliRunner()


def test_cli_help(runner):
    """CLI --help should work and show commands."""
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("stats", "match", "backup", "restore", "check"):
        assert command in result.output


def test_cli_version(runner):
    """CLI --version should show version."""
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_email_required(runner, monkeypatch):
    """Commands fail without an account address."""
    monkeypatch.delenv("IMAP_CLEANER_EMAIL", raising=False)
    result = runner.invoke(cli, ["check", "--password", "x"])
    assert result.exit_code != 0
    assert "--email" in result.output


def test_credentials_from_environment(runner, fake_session, monkeypatch):
    """Address and password can come from the environment."""
    monkeypatch.setenv("IMAP_CLEANER_EMAIL", "env@example.com")
    monkeypatch.setenv("IMAP_CLEANER_PASSWORD", "from-env")
    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 0
    assert fake_session["config"].email == "env@example.com"
    assert fake_session["config"].password == "from-env"


def test_check(runner, fake_session):
    """check reports the account, server, tier and folder count."""
    fake_session["mailbox"] = FakeMailbox({"INBOX": [], "Sent": [], "Trash": []})
    result = runner.invoke(cli, ["check", *LOGIN, "--imap", "imap.example.com:993"])
    assert result.exit_code == 0
    assert "me@example.com" in result.output
    assert "3 folders" in result.output
    assert "imap.example.com:993" in result.output
    assert "modern" in result.output
    assert fake_session["config"].server == "imap.example.com:993"


def test_session_error_is_reported(runner, monkeypatch):
    """A failed login exits with status 1 and a one-line message."""
    @contextmanager
    def _rejecting(config):
        raise AuthenticationError("Login rejected for me@example.com")
        yield

    monkeypatch.setattr(cli_module, "open_mailbox", _rejecting)
    result = runner.invoke(cli, ["check", *LOGIN])
    assert result.exit_code == 1
    assert "Login rejected" in result.output


def test_stats_deletes_selected_group(runner, fake_session, sender_mailbox):
    """stats deletes the group picked at the prompt."""
    fake_session["mailbox"] = sender_mailbox
    result = runner.invoke(cli, ["stats", *LOGIN], input="1\ny\nq\n")

    assert result.exit_code == 0, result.output
    assert "x@example.com" in result.output
    assert sender_mailbox.count("A") == 3


def test_stats_no_delete(runner, fake_session, sender_mailbox):
    """--no-delete shows the table without touching the mailbox."""
    fake_session["mailbox"] = sender_mailbox
    result = runner.invoke(cli, ["stats", *LOGIN, "--no-delete", "--size"])

    assert result.exit_code == 0, result.output
    assert "x@example.com" in result.output
    assert "MB" in result.output
    assert not any(c[0] == "store" for c in sender_mailbox.calls)


def test_stats_groups_by_subject(runner, fake_session, spam_mailbox):
    """-f subject groups by subject."""
    fake_session["mailbox"] = spam_mailbox
    result = runner.invoke(cli, ["stats", *LOGIN, "-f", "subject", "--no-delete"])
    assert result.exit_code == 0, result.output
    assert "SUBJECT" in result.output
    assert fake_session["config"].group_field == "subject"


def test_stats_rejects_unknown_field(runner, fake_session):
    """An unknown field is a usage error."""
    result = runner.invoke(cli, ["stats", *LOGIN, "-f", "cc"])
    assert result.exit_code == 2


def test_stats_export(runner, fake_session, sender_mailbox, tmp_path):
    """--export writes the ranked groups to a file."""
    fake_session["mailbox"] = sender_mailbox
    out = tmp_path / "groups.json"
    result = runner.invoke(cli, ["stats", *LOGIN, "--no-delete", "--export", str(out), "--format", "json"])
    assert result.exit_code == 0, result.output
    assert "x@example.com" in out.read_text(encoding="utf-8")


def test_stats_empty_mailbox(runner, fake_session):
    """An empty mailbox says so and exits cleanly."""
    result = runner.invoke(cli, ["stats", *LOGIN])
    assert result.exit_code == 0
    assert "Mailbox empty" in result.output


def test_stats_stops_at_end_of_input(runner, fake_session, sender_mailbox):
    """End of input stops the prompt without deleting."""
    fake_session["mailbox"] = sender_mailbox
    result = runner.invoke(cli, ["stats", *LOGIN], input="")
    assert result.exit_code == 0
    assert sender_mailbox.count("A") == 8


def test_match_confirmed(runner, fake_session, spam_mailbox):
    """match deletes every match after a yes."""
    fake_session["mailbox"] = spam_mailbox
    result = runner.invoke(cli, ["match", "spam", "-f", "subject", *LOGIN], input="y\n")

    assert result.exit_code == 0, result.output
    assert "12" in result.output
    assert spam_mailbox.count("INBOX") == 3
    assert spam_mailbox.count("Junk") == 1


def test_match_declined(runner, fake_session, spam_mailbox):
    """match keeps everything after a no."""
    fake_session["mailbox"] = spam_mailbox
    result = runner.invoke(cli, ["match", "spam", "-f", "subject", *LOGIN], input="n\n")

    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert spam_mailbox.count("INBOX") == 10


def test_match_nothing(runner, fake_session, spam_mailbox):
    """match with no hits says Nothing matches."""
    fake_session["mailbox"] = spam_mailbox
    result = runner.invoke(cli, ["match", "lottery", *LOGIN])
    assert result.exit_code == 0
    assert "Nothing matches" in result.output


def test_match_empty_text(runner, fake_session):
    """match refuses empty text."""
    result = runner.invoke(cli, ["match", "  ", *LOGIN])
    assert result.exit_code == 2


def test_backup_and_restore(runner, fake_session, tmp_path):
    """backup then restore copies the mailbox."""
    source = FakeMailbox(
        {
            "INBOX": [make_message(i) for i in range(1, 4)],
            "Sent": [make_message(1, subject="sent")],
        }
    )
    fake_session["mailbox"] = source
    path = tmp_path / "mail.tar.gz"

    result = runner.invoke(cli, ["backup", str(path), *LOGIN])
    assert result.exit_code == 0, result.output
    assert path.exists()

    target = FakeMailbox({"INBOX": []})
    fake_session["mailbox"] = target
    result = runner.invoke(cli, ["restore", str(path), *LOGIN])
    assert result.exit_code == 0, result.output
    assert target.count("INBOX") == 3
    assert target.count("Sent") == 1


def test_restore_missing_file(runner, fake_session, tmp_path):
    """restore of a missing file is a usage error."""
    result = runner.invoke(cli, ["restore", str(tmp_path / "missing.tar.gz"), *LOGIN])
    assert result.exit_code == 2


def test_restore_corrupt_archive(runner, fake_session, tmp_path):
    """restore of a damaged archive exits with status 1."""
    path = tmp_path / "bad.tar.gz"
    path.write_bytes(b"not an archive")
    result = runner.invoke(cli, ["restore", str(path), *LOGIN])
    assert result.exit_code == 1
