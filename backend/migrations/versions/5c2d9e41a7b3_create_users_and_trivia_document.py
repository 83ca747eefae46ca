"""create user, user_name, user_address and trivia_document tables

Revision ID: 5c2d9e41a7b3
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2d9e41a7b3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('userid', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('username'),
        )
        op.create_index('ix_user_userid', 'user', ['userid'], unique=True)

    if 'user_name' not in existing_tables:
        op.create_table(
            'user_name',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('userid', sa.String(length=64), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['user.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_user_name_user_id', 'user_name', ['user_id'])
        op.create_index('ix_user_name_userid', 'user_name', ['userid'])

    if 'user_address' not in existing_tables:
        op.create_table(
            'user_address',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('address', sa.String(length=64), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['user.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_user_address_user_id', 'user_address', ['user_id'])
        op.create_index('ix_user_address_address', 'user_address', ['address'])

    if 'trivia_document' not in existing_tables:
        op.create_table(
            'trivia_document',
            sa.Column('key', sa.String(length=32), nullable=False),
            sa.Column('payload', sa.Text(), nullable=False),
            sa.PrimaryKeyConstraint('key'),
        )


def downgrade():
    op.drop_table('trivia_document')
    op.drop_index('ix_user_address_address', table_name='user_address')
    op.drop_index('ix_user_address_user_id', table_name='user_address')
    op.drop_table('user_address')
    op.drop_index('ix_user_name_userid', table_name='user_name')
    op.drop_index('ix_user_name_user_id', table_name='user_name')
    op.drop_table('user_name')
    op.drop_index('ix_user_userid', table_name='user')
    op.drop_table('user')
