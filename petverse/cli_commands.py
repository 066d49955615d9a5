"""
Flask CLI commands for marketplace maintenance.

Commands:
- flask init-db: Create all tables
- flask create-user: Create a marketplace user
- flask create-product: Add a product to the catalog
- flask grant-points: Adjust a user's loyalty balance
"""

import re
import click
from petverse import database
from petverse.exceptions import PetverseError
from petverse.models import User, UserRole
from petverse.services import inventory_service, loyalty_service


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        database.create_all()
        click.echo(click.style('✅ Tables created', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='User email address')
    @click.option('--uid', prompt=True, help='Identity issued by the auth provider')
    @click.option('--name', default=None, help='Full name')
    @click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.PET_OWNER.value)
    def create_user(email, uid, name, role):
        """Create a marketplace user."""
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email):
            click.echo(click.style('❌ Invalid email. Use user@example.com', fg='red'))
            return

        db_session = database.get_session()
        if db_session.query(User).filter((User.email == email) | (User.external_uid == uid)).first():
            click.echo(click.style(f'❌ A user with email {email} or uid {uid} already exists', fg='red'))
            return

        try:
            user = User(email=email, external_uid=uid, full_name=name, role=role)
            db_session.add(user)
            db_session.commit()
            click.echo(click.style('✅ User created', fg='green', bold=True))
            click.echo(f'   ID: {user.id}  Role: {role}')
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error creating user: {e}', fg='red'))

    @app.cli.command('create-product')
    @click.option('--code', prompt=True, help='Product code (3-6 characters)')
    @click.option('--name', prompt=True)
    @click.option('--price', prompt=True, type=float)
    @click.option('--quantity', default=0, type=int)
    @click.option('--category', default=None)
    def create_product(code, name, price, quantity, category):
        """Add a product to the catalog."""
        db_session = database.get_session()
        try:
            product = inventory_service.create_product(db_session, {
                'productID': code,
                'name': name,
                'price': price,
                'quantity': quantity,
                'category': category,
            })
            db_session.commit()
            click.echo(click.style(f'✅ Product {product.code} created', fg='green'))
        except PetverseError as e:
            db_session.rollback()
            click.echo(click.style(f'❌ {e.message}', fg='red'))

    @app.cli.command('grant-points')
    @click.argument('user_id', type=int)
    @click.argument('points', type=int)
    def grant_points(user_id, points):
        """Add (or with a negative value, remove) loyalty points."""
        db_session = database.get_session()
        try:
            balance = loyalty_service.grant_points(db_session, user_id, points)
            db_session.commit()
            click.echo(click.style(f'✅ User {user_id} now has {balance} points', fg='green'))
        except PetverseError as e:
            db_session.rollback()
            click.echo(click.style(f'❌ {e.message}', fg='red'))
