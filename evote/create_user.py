# evote/create_user.py

# `flask --app evote seed-superadmin`: create the initial SUPER_ADMIN account.
# Every other role change goes through the audited /users/<id>/role route.

import logging

import click
from flask import current_app
from flask.cli import with_appcontext

from evote import db
from evote.authentication.rbac import UserRole
from evote.database.models import Voter

logger = logging.getLogger(__name__)


@click.command('seed-superadmin')
@click.option('--email', default=None, help='Defaults to SUPERADMIN_EMAIL.')
@click.option('--name', default='Super Admin', show_default=True)
@with_appcontext
def seed_superadmin_command(email, name):
    svc = current_app.extensions['evote']
    email = (email or current_app.config['SUPERADMIN_EMAIL']).strip().lower()

    if db.session.query(Voter).filter_by(email=email).first() is not None:
        click.echo(f"Super admin {email} already exists, nothing to do.")
        return

    password = current_app.config.get('SUPERADMIN_PASSWORD')
    generated = not password
    if generated:
        password = svc['credentials'].generate_secure_password()

    voter = Voter(
        name=name,
        email=email,
        password_hash=svc['credentials'].hash_password(password),
        verified=True,
        verification_token=None,
        role=UserRole.SUPER_ADMIN.value,
    )
    db.session.add(voter)
    db.session.flush()
    voter_id = voter.id
    db.session.commit()

    svc['audit'].record(
        'CREATE_SUPERADMIN', 'User', entity_id=voter_id,
        new_values={'email': email, 'role': UserRole.SUPER_ADMIN.value},
    )
    svc['audit'].flush()
    logger.info("Super admin %s created", voter_id)

    click.echo(f"Super admin created: {email}")
    if generated:
        click.echo(f"Generated password (store it now, it is not shown again): {password}")
