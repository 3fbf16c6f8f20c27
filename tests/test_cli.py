import importlib
import json

import pyperclip
import pytest
from click.testing import CliRunner

from safekeep.cli import cli, format_age
from safekeep.codec import decode

# the package re-exports the click group under the same name
cli_module = importlib.import_module("safekeep.cli")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def vault(tmp_path):
    return str(tmp_path / "test.vault")


def run(runner, vault, args, input=None):
    return runner.invoke(cli, ["--vault", vault] + args, input=input)


@pytest.fixture
def initialized(runner, vault):
    result = run(runner, vault, ["init", "--name", "Test"], input="master123\nmaster123\n")
    assert result.exit_code == 0, result.output
    return vault


def add_example(runner, vault):
    return run(runner, vault, ["add", "--site", "Example", "--username", "u", "--url", "https://example.com"],
               input="master123\np1\np1\n")


def read_vault(path, password="master123"):
    with open(path, encoding="utf-8") as f:
        return decode(f.read(), password)


def test_init_creates_encrypted_vault(initialized):
    doc = read_vault(initialized)
    assert doc.metadata.name == "Test"
    assert doc.entries == []


def test_init_password_mismatch(runner, vault):
    result = run(runner, vault, ["init"], input="one\ntwo\n")
    assert result.exit_code == 1
    assert "don't match" in result.output


def test_init_refuses_to_overwrite_without_confirmation(runner, initialized):
    result = run(runner, initialized, ["init"], input="n\n")
    assert result.exit_code == 0
    assert "already exists" in result.output
    assert read_vault(initialized).metadata.name == "Test"


def test_add_then_list(runner, initialized):
    result = add_example(runner, initialized)
    assert result.exit_code == 0, result.output
    assert "Saved Example (id 1)" in result.output

    listing = run(runner, initialized, ["list"], input="master123\n")
    assert listing.exit_code == 0
    assert "Example" in listing.output
    assert "p1" not in listing.output

    doc = read_vault(initialized)
    assert doc.entries[0].site_name == "Example"
    assert doc.entries[0].password == "p1"


def test_wrong_master_password(runner, initialized):
    result = run(runner, initialized, ["list"], input="wrong\n")
    assert result.exit_code == 1
    assert "Invalid vault file or incorrect password" in result.output


def test_missing_vault(runner, vault):
    result = run(runner, vault, ["list"], input="master123\n")
    assert result.exit_code == 1
    assert "No vault" in result.output


def test_add_generated_password(runner, initialized):
    result = run(runner, initialized, ["add", "--site", "Gen", "--generate", "--length", "24"],
                 input="master123\n")
    assert result.exit_code == 0, result.output
    assert len(read_vault(initialized).entries[0].password) == 24


def test_add_rejects_empty_site(runner, initialized):
    result = run(runner, initialized, ["add", "--site", " "], input="master123\npw\npw\n")
    assert result.exit_code == 1
    assert "Site name is required" in result.output
    assert read_vault(initialized).entries == []


def test_get_masks_and_shows(runner, initialized):
    add_example(runner, initialized)

    masked = run(runner, initialized, ["get", "1"], input="master123\n")
    assert "**" in masked.output
    assert "p1" not in masked.output

    shown = run(runner, initialized, ["get", "1", "--show"], input="master123\n")
    assert "p1" in shown.output
    assert "https://example.com" in shown.output


def test_get_unknown_entry(runner, initialized):
    result = run(runner, initialized, ["get", "7"], input="master123\n")
    assert result.exit_code == 1
    assert "No entry with id 7" in result.output


def test_search(runner, initialized):
    add_example(runner, initialized)
    hit = run(runner, initialized, ["search", "EXAMPLE.COM"], input="master123\n")
    assert "1 match(es)" in hit.output
    miss = run(runner, initialized, ["search", "nothing"], input="master123\n")
    assert "0 match(es)" in miss.output


def test_edit(runner, initialized):
    add_example(runner, initialized)
    before = read_vault(initialized).entries[0]

    result = run(runner, initialized, ["edit", "1", "--notes", "rotated", "--password"],
                 input="master123\nx\nx\n")
    assert result.exit_code == 0, result.output

    after = read_vault(initialized).entries[0]
    assert after.password == "x"
    assert after.notes == "rotated"
    assert after.modified_at > before.modified_at
    assert after.created_at == before.created_at


def test_edit_unknown_entry(runner, initialized):
    result = run(runner, initialized, ["edit", "3", "--notes", "x"], input="master123\n")
    assert result.exit_code == 1


def test_delete(runner, initialized):
    add_example(runner, initialized)
    result = run(runner, initialized, ["delete", "1", "--force"], input="master123\n")
    assert result.exit_code == 0, result.output
    assert read_vault(initialized).entries == []

    again = run(runner, initialized, ["delete", "1", "--force"], input="master123\n")
    assert again.exit_code == 1


def test_passwd(runner, initialized):
    add_example(runner, initialized)
    result = run(runner, initialized, ["passwd"], input="master123\nnew-master\nnew-master\n")
    assert result.exit_code == 0, result.output

    assert read_vault(initialized, "new-master").entries[0].password == "p1"
    assert run(runner, initialized, ["list"], input="master123\n").exit_code == 1


def test_build(runner, tmp_path):
    source = tmp_path / "passwords.json"
    source.write_text(json.dumps([{"site_name": "Example", "username": "u", "password": "p1"}]),
                      encoding="utf-8")

    result = runner.invoke(cli, ["build", str(source)], input="master123\nmaster123\n")
    assert result.exit_code == 0, result.output
    assert "passwords.vault" in result.output

    listing = run(runner, str(tmp_path / "passwords.vault"), ["list"], input="master123\n")
    assert "Example" in listing.output


def test_export_masks_by_default(runner, initialized):
    add_example(runner, initialized)
    result = run(runner, initialized, ["export"], input="master123\n")
    assert result.exit_code == 0
    assert "***HIDDEN***" in result.output
    assert '"p1"' not in result.output


def test_generate(runner):
    result = runner.invoke(cli, ["generate", "--count", "3", "--length", "12"])
    assert result.exit_code == 0
    lines = [line for line in result.output.splitlines() if line]
    assert len(lines) == 3
    assert all(len(line) == 12 for line in lines)


def test_build_from_csv(runner, tmp_path):
    source = tmp_path / "export.csv"
    source.write_text("site_name,site_url,username,password,notes\n"
                      "Example,https://example.com,u,p1,\n"
                      "Incomplete,,x,,\n", encoding="utf-8")

    result = runner.invoke(cli, ["build", str(source), "--format", "csv"], input="master123\nmaster123\n")
    assert result.exit_code == 0, result.output

    doc = read_vault(str(tmp_path / "export.vault"))
    assert [(e.id, e.site_name, e.password) for e in doc.entries] == [(1, "Example", "p1")]


@pytest.fixture
def fake_clipboard(monkeypatch):
    board = {"text": "", "slept": []}

    def copy(text):
        board["text"] = text

    monkeypatch.setattr(pyperclip, "copy", copy)
    monkeypatch.setattr(pyperclip, "paste", lambda: board["text"])
    monkeypatch.setattr(cli_module.time, "sleep", lambda seconds: board["slept"].append(seconds))
    return board


def test_get_copy_clears_clipboard_before_exiting(runner, initialized, fake_clipboard, monkeypatch):
    add_example(runner, initialized)
    monkeypatch.setenv("SAFEKEEP_CLIPBOARD_TIMEOUT", "5")

    result = run(runner, initialized, ["get", "1", "--copy"], input="master123\n")

    assert result.exit_code == 0, result.output
    assert fake_clipboard["slept"] == [5]
    assert fake_clipboard["text"] == ""
    assert "Clipboard cleared" in result.output


def test_get_copy_keeps_clipboard_replaced_meanwhile(runner, initialized, fake_clipboard, monkeypatch):
    add_example(runner, initialized)
    monkeypatch.setenv("SAFEKEEP_CLIPBOARD_TIMEOUT", "5")
    monkeypatch.setattr(cli_module.time, "sleep",
                        lambda seconds: fake_clipboard.update(text="something else"))

    run(runner, initialized, ["get", "1", "--copy"], input="master123\n")

    assert fake_clipboard["text"] == "something else"


def test_format_age_tolerates_bad_timestamps():
    assert format_age(1700000000000) == "Unknown"
    assert format_age("yesterday-ish") == "Unknown"
    assert format_age(None) == "Unknown"
