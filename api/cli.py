"""
Flask CLI commands:
- flask create-user USERNAME   (seed a login; password is prompted)
- flask purge-tokens           (one manual reaper sweep)
"""
import click
from flask import current_app
from flask.cli import with_appcontext

from api.extensions import get_auth
from models.user import User
from utils.security import hash_password

MIN_PASSWORD_LENGTH = 8


@click.command("create-user")
@click.argument("username")
@click.password_option()
@with_appcontext
def create_user_command(username, password):
    """Create a user that can log in."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise click.BadParameter(f"must be at least {MIN_PASSWORD_LENGTH} characters", param_hint="password")
    storage = get_auth().storage
    if storage.get_user_by_username(username) is not None:
        raise click.ClickException(f"user {username!r} already exists")
    user = User(username=username, password_hash=hash_password(password))
    storage.new(user)
    storage.save()
    click.echo(f"Created user {username} ({user.id})")


@click.command("purge-tokens")
@with_appcontext
def purge_tokens_command():
    """Delete revoked and expired refresh tokens now."""
    deleted = get_auth().reaper.run_once()
    if deleted is None:
        raise click.ClickException("cleanup failed, see log")
    click.echo(f"Purged {deleted} refresh token(s) from {current_app.config['APP_ENV']} store")


def register_commands(app):
    app.cli.add_command(create_user_command)
    app.cli.add_command(purge_tokens_command)
