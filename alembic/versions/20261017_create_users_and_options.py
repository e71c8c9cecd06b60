"""Create users and options tables

Revision ID: 20261017_create_users_and_options
Revises:
Create Date: 2026-10-17 09:00:00
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20261017_create_users_and_options'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('admin', 'editor', 'author', 'subscriber', name='userrole')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('display_name', sa.String(), nullable=False),
        sa.Column('login', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='subscriber'),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_login', 'users', ['login'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Written once (installation_secret, installed_time), never updated
    op.create_table(
        'options',
        sa.Column('key', sa.String(191), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )


def downgrade() -> None:
    op.drop_table('options')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_login', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
    user_role.drop(op.get_bind(), checkfirst=True)
