"""
Flask CLI commands.

    flask --app hostelhub.server mark-overdue [--interval SECONDS]
    flask --app hostelhub.server create-user
"""

import logging
import time

import click

from . import policy
from .errors import ApiError
from .models import outpass
from .routes.auth import create_user
from .schemas import CreateUser, validate

logger = logging.getLogger(__name__)


def mark_overdue_outpasses(outpasses, now=None):
    """Move every checked out request past its return time to overdue.

    The write only lands while the stored request is still checked out, so
    a concurrent check-in wins. Returns the requests that changed.
    """
    now = now or outpass.local_now()
    changed = []
    for request in outpasses.checked_out():
        if not outpass.check_overdue_status(request, now):
            continue
        if outpasses.save_if(request, {'status': outpass.CHECKED_OUT}):
            changed.append(request)

    logger.info('⏰ Overdue reconciliation: %d outpass(es) marked overdue', len(changed))
    return changed


def register_commands(app, repos):

    @app.cli.command('mark-overdue')
    @click.option('--interval', type=int, default=None,
                  help='Repeat every INTERVAL seconds instead of running once.')
    @click.option('--watch', is_flag=True,
                  help='Repeat every OVERDUE_CHECK_INTERVAL seconds.')
    def mark_overdue_command(interval, watch):
        """Mark checked out outpasses past their return time as overdue."""
        if watch and not interval:
            interval = app.config['OVERDUE_CHECK_INTERVAL']
        while True:
            changed = mark_overdue_outpasses(repos.outpasses)
            click.echo(f'{len(changed)} outpass(es) marked overdue')
            if not interval:
                break
            time.sleep(interval)

    @app.cli.command('create-user')
    @click.option('--identifier', prompt=True)
    @click.option('--name', prompt=True)
    @click.option('--email', prompt=True)
    @click.option('--phone', prompt=True)
    @click.option('--role', prompt=True, type=click.Choice(policy.ROLES))
    @click.password_option()
    def create_user_command(identifier, name, email, phone, role, password):
        """Create an account for any role (staff cannot self-register)."""
        try:
            data = validate(CreateUser, {
                'identifier': identifier,
                'name': name,
                'email': email,
                'phone': phone,
                'role': role,
                'password': password,
            })
            user = create_user(repos.users, data, data.role)
        except ApiError as e:
            raise click.ClickException(f'{e.message} {e.details or ""}'.strip())

        click.echo(f"✅ Created {user['role']} {user['identifier']} ({user['_id']})")
