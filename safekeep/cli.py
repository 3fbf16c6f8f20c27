#!/usr/bin/env python3
"""
SafeKeep - command line front end for .vault files
"""
import sys
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import click
import pyperclip
from tabulate import tabulate

from . import __version__, config
from .exceptions import NotFoundError, SafeKeepError, StorageError
from .generator import generate_password
from .models import Entry, parse_timestamp
from .portability import VaultExporter, build_vault_file
from .session import MasterSession
from .storage import VaultStorage


def prompt_master_password(confirm: bool = False, label: str = "Master password") -> Optional[str]:
    """Prompt for a password with optional confirmation"""
    password = click.prompt(label, hide_input=True, default="", show_default=False)

    if confirm:
        confirm_password = click.prompt(f"Confirm {label.lower()}", hide_input=True,
                                        default="", show_default=False)
        if password != confirm_password:
            click.echo("❌ Passwords don't match!", err=True)
            return None

    return password


def unlock_vault(ctx: click.Context) -> Tuple[MasterSession, str]:
    """Ask for the master password and unlock the vault, or exit"""
    storage = ctx.obj['storage']
    if not storage.exists():
        click.echo(f"❌ No vault at {storage.filename}. Create one with 'safekeep init'.", err=True)
        sys.exit(1)

    session = MasterSession()
    password = prompt_master_password()
    if not password or not session.unlock_file(storage, password):
        message = session.last_error or "Invalid vault file or incorrect password"
        click.echo(f"❌ {message}", err=True)
        sys.exit(1)
    return session, password


def open_vault(ctx: click.Context) -> MasterSession:
    session, _ = unlock_vault(ctx)
    return session


def save_vault(ctx: click.Context, session: MasterSession) -> None:
    try:
        session.save(ctx.obj['storage'])
    except StorageError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)


def copy_to_clipboard(text: str) -> bool:
    """Copy text to the clipboard; False if no clipboard is available"""
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException:
        return False
    return True


def clear_clipboard_after(text: str, timeout: int) -> None:
    """
    Wait timeout seconds in the foreground, then clear the clipboard.

    Ctrl+C clears it right away. The clipboard is left alone if something
    else was copied in the meantime.
    """
    if timeout <= 0:
        return
    try:
        time.sleep(timeout)
    except KeyboardInterrupt:
        pass

    try:
        if pyperclip.paste() == text:
            pyperclip.copy("")
            click.echo("🧹 Clipboard cleared.")
    except pyperclip.PyperclipException:
        click.echo("⚠️  Could not clear the clipboard", err=True)


def format_age(timestamp: Optional[str]) -> str:
    if not timestamp:
        return "Unknown"
    try:
        modified = parse_timestamp(timestamp)
    except (TypeError, ValueError):
        return "Unknown"

    if modified.tzinfo is None:
        modified = modified.replace(tzinfo=timezone.utc)
    age_days = (datetime.now(timezone.utc) - modified).days
    if age_days <= 0:
        return "Today"
    if age_days == 1:
        return "Yesterday"
    if age_days < 30:
        return f"{age_days}d ago"
    if age_days < 365:
        return f"{age_days // 30}mo ago"
    return f"{age_days // 365}y ago"


def print_entries(entries: List[Entry], verbose: bool = False) -> None:
    headers = ['ID', 'Site', 'Username', 'URL', 'Modified']
    if verbose:
        headers.extend(['Created', 'Notes'])

    rows = []
    for entry in entries:
        row = [entry.id, entry.site_name, entry.username, entry.site_url, format_age(entry.modified_at)]
        if verbose:
            notes = entry.notes if len(entry.notes) <= 40 else entry.notes[:40] + '...'
            row.extend([(entry.created_at or 'Unknown')[:10], notes])
        rows.append(row)

    click.echo()
    click.echo(tabulate(rows, headers=headers, tablefmt='simple_grid'))


def find_entry(session: MasterSession, entry_id: int) -> Entry:
    entry = session.store.get(entry_id)
    if entry is None:
        raise NotFoundError(entry_id)
    return entry


@click.group()
@click.version_option(version=__version__, prog_name="SafeKeep")
@click.option('--vault', 'vault_path', envvar='SAFEKEEP_VAULT', type=click.Path(dir_okay=False),
              help='Path to the .vault file')
@click.option('--verbose', is_flag=True, help='Show debug logging')
@click.pass_context
def cli(ctx, vault_path, verbose):
    """SafeKeep - an offline password vault

    Entries live in a single encrypted .vault file. The master password is
    never stored; without it the file cannot be opened.
    """
    config.configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj['storage'] = VaultStorage(vault_path or config.get_default_vault())


@cli.command()
@click.option('--name', '-n', help='Vault name stored in its metadata')
@click.pass_context
def init(ctx, name):
    """Create a new, empty vault"""
    storage = ctx.obj['storage']

    if storage.exists():
        click.echo("⚠️  Vault already exists!")
        if not click.confirm("Do you want to delete it and create a new one?"):
            return

    click.echo("🔐 Creating a new password vault...\n")
    click.echo("Choose a strong master password. There is no way to recover it.\n")

    password = prompt_master_password(confirm=True)
    if not password:
        click.echo("❌ Master password cannot be empty.", err=True)
        sys.exit(1)

    session = MasterSession()
    session.create_vault(password, name)
    save_vault(ctx, session)
    session.lock()

    click.echo("\n✅ Password vault created successfully!")
    click.echo(f"📁 Location: {storage.filename}")


@cli.command()
@click.option('--site', '-s', prompt="Site name", help='Website or service name')
@click.option('--url', '-U', default="", help='Site URL')
@click.option('--username', '-u', default="", help='Username or email')
@click.option('--notes', '-n', default="", help='Optional notes about this account')
@click.option('--generate', '-g', is_flag=True, help='Generate a secure password')
@click.option('--length', '-l', default=config.DEFAULT_PASSWORD_LENGTH, help='Generated password length')
@click.option('--no-symbols', is_flag=True, help='Exclude symbols from generated password')
@click.pass_context
def add(ctx, site, url, username, notes, generate, length, no_symbols):
    """Add a new entry to the vault"""
    session = open_vault(ctx)

    try:
        if generate:
            password = generate_password(length, use_symbols=not no_symbols)
            click.echo(f"\n🎲 Generated password: {click.style(password, fg='green', bold=True)}")
        else:
            password = prompt_master_password(confirm=True, label="Password")
            if password is None:
                return

        entry_id = session.store.create(Entry(
            site_name=site, site_url=url, username=username, password=password, notes=notes,
        ))
        save_vault(ctx, session)
        click.echo(f"✅ Saved {site} (id {entry_id})")
    except SafeKeepError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    finally:
        session.lock()


@cli.command('list')
@click.option('--filter', '-f', 'query', help='Only show entries matching this text')
@click.option('--verbose', '-v', is_flag=True, help='Show more details')
@click.pass_context
def list_entries(ctx, query, verbose):
    """List stored entries in a table"""
    session = open_vault(ctx)
    try:
        entries = session.store.search(query or "")
        click.echo(f"\n📋 {session.vault_name}")
        if not entries:
            click.echo("  (No entries)")
            return
        print_entries(entries, verbose)
    finally:
        session.lock()


@cli.command()
@click.argument('query')
@click.option('--show-passwords', '-p', is_flag=True, help='Show passwords in results')
@click.pass_context
def search(ctx, query, show_passwords):
    """Search site names, URLs, usernames and notes"""
    session = open_vault(ctx)
    try:
        entries = session.store.search(query)
        click.echo(f"\n🔍 {len(entries)} match(es) for '{query}'")
        if not entries:
            return
        print_entries(entries)
        if show_passwords:
            click.echo()
            for entry in entries:
                click.echo(f"  {entry.id}: {entry.password}")
    finally:
        session.lock()


@cli.command()
@click.argument('entry_id', type=int)
@click.option('--show', '-S', is_flag=True, help='Show password in plain text')
@click.option('--copy', '-c', is_flag=True, help='Copy password to clipboard')
@click.pass_context
def get(ctx, entry_id, show, copy):
    """Show one entry"""
    session = open_vault(ctx)
    try:
        entry = find_entry(session, entry_id)

        click.echo(f"\n🔐 {click.style(entry.site_name, bold=True)}")
        if entry.site_url:
            click.echo(f"🌐 URL: {entry.site_url}")
        click.echo(f"👤 Username: {click.style(entry.username, fg='cyan')}")
        if show:
            click.echo(f"🔑 Password: {click.style(entry.password, fg='yellow')}")
        else:
            click.echo(f"🔑 Password: {'*' * len(entry.password)} (use --show to display)")
        if entry.notes:
            click.echo(f"📝 Notes: {entry.notes}")
        if entry.modified_at:
            click.echo(f"📅 Last modified: {entry.modified_at[:10]}")

        if copy:
            timeout = config.get_clipboard_timeout()
            if copy_to_clipboard(entry.password):
                if timeout > 0:
                    click.echo(f"\n✅ Password copied to clipboard! "
                               f"Clearing in {timeout} seconds (Ctrl+C to clear now)...")
                    clear_clipboard_after(entry.password, timeout)
                else:
                    click.echo("\n✅ Password copied to clipboard!")
            else:
                click.echo("\n⚠️  No clipboard available on this system", err=True)
    except NotFoundError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    finally:
        session.lock()


@cli.command()
@click.argument('entry_id', type=int)
@click.option('--site', '-s', help='New site name')
@click.option('--url', '-U', help='New URL')
@click.option('--username', '-u', help='New username')
@click.option('--notes', '-n', help='New notes')
@click.option('--password', '-p', 'change_password', is_flag=True, help='Prompt for a new password')
@click.option('--generate', '-g', is_flag=True, help='Replace the password with a generated one')
@click.option('--length', '-l', default=config.DEFAULT_PASSWORD_LENGTH, help='Generated password length')
@click.pass_context
def edit(ctx, entry_id, site, url, username, notes, change_password, generate, length):
    """Change fields of an existing entry"""
    session = open_vault(ctx)
    try:
        entry = find_entry(session, entry_id)
        changes = {k: v for k, v in
                   (('site_name', site), ('site_url', url), ('username', username), ('notes', notes))
                   if v is not None}

        if generate:
            changes['password'] = generate_password(length)
            click.echo(f"🎲 Generated password: {click.style(changes['password'], fg='green', bold=True)}")
        elif change_password:
            new_password = prompt_master_password(confirm=True, label="New password")
            if new_password is None:
                return
            changes['password'] = new_password

        if not changes:
            click.echo("Nothing to change.")
            return

        if not session.store.update(entry.copy(**changes)):
            raise NotFoundError(entry_id)
        save_vault(ctx, session)
        click.echo(f"✅ Updated {changes.get('site_name', entry.site_name)}")
    except SafeKeepError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    finally:
        session.lock()


@cli.command()
@click.argument('entry_id', type=int)
@click.option('--force', '-f', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def delete(ctx, entry_id, force):
    """Delete an entry"""
    session = open_vault(ctx)
    try:
        entry = find_entry(session, entry_id)
        if not force and not click.confirm(f"⚠️  Delete {entry.site_name}?"):
            click.echo("Cancelled.")
            return
        if not session.store.delete(entry_id):
            raise NotFoundError(entry_id)
        save_vault(ctx, session)
        click.echo(f"✅ Deleted {entry.site_name}")
    except NotFoundError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    finally:
        session.lock()


@cli.command()
@click.pass_context
def passwd(ctx):
    """Change the master password"""
    session, current_password = unlock_vault(ctx)
    try:
        click.echo("Enter the new master password.")
        new_password = prompt_master_password(confirm=True, label="New master password")
        if not new_password:
            click.echo("❌ Master password not changed.", err=True)
            sys.exit(1)
        session.change_master_password(current_password, new_password)
        save_vault(ctx, session)
        click.echo("✅ Master password changed.")
    finally:
        session.lock()


@cli.command()
@click.argument('source_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Output .vault path')
@click.option('--format', '-f', 'format_type', type=click.Choice(['json', 'csv']), default='json',
              help='Input format')
def build(source_file, output, format_type):
    """Encrypt a plain JSON or CSV list of entries into a .vault file

    JSON input is either a list of entries or an object with an "entries"
    list. CSV input needs a site_name,site_url,username,password,notes
    header; rows without a site name or password are skipped. The vault is
    written next to the input unless --output is given.
    """
    password = prompt_master_password(confirm=True)
    if not password:
        click.echo("❌ Master password cannot be empty.", err=True)
        sys.exit(1)

    try:
        path = build_vault_file(source_file, password, output, format_type=format_type)
    except SafeKeepError as e:
        click.echo(f"❌ Error creating vault file: {e}", err=True)
        sys.exit(1)

    click.echo(f"\n✅ Vault file successfully created at: {path}")


@cli.command()
@click.option('--format', '-f', 'format_type', type=click.Choice(['json', 'csv']), default='json',
              help='Export format')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Output file path')
@click.option('--include-passwords', is_flag=True, help='Include actual passwords (CAREFUL!)')
@click.pass_context
def export(ctx, format_type, output, include_passwords):
    """Export entries as unencrypted JSON or CSV"""
    if include_passwords:
        click.echo("⚠️  The export will contain your passwords in plain text!", err=True)
    session = open_vault(ctx)
    try:
        result = VaultExporter().export_entries(session.document, format_type, include_passwords, output)
        click.echo(result)
    except SafeKeepError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    finally:
        session.lock()


@cli.command()
@click.option('--length', '-l', default=config.DEFAULT_PASSWORD_LENGTH, type=int, help='Password length')
@click.option('--count', '-c', default=1, type=int, help='Number of passwords to generate')
@click.option('--no-symbols', is_flag=True, help='Exclude symbols')
@click.option('--no-digits', is_flag=True, help='Exclude numbers')
@click.option('--no-uppercase', is_flag=True, help='Exclude uppercase letters')
@click.option('--no-ambiguous', is_flag=True, help='Exclude ambiguous characters (0,O,l,1)')
def generate(length, count, no_symbols, no_digits, no_uppercase, no_ambiguous):
    """Generate random passwords"""
    try:
        for _ in range(count):
            click.echo(generate_password(
                length,
                use_uppercase=not no_uppercase,
                use_digits=not no_digits,
                use_symbols=not no_symbols,
                exclude_ambiguous=no_ambiguous,
            ))
    except ValueError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    cli()
