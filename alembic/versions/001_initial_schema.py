"""Initial schema: users, classes, news, verifications, parent links

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Классы
    op.create_table(
        'classes',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('admin_telegram_user_id', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_classes_name'),
    )
    op.create_index('ix_classes_id', 'classes', ['id'])
    op.create_index('ix_classes_admin_telegram_user_id', 'classes', ['admin_telegram_user_id'])

    # Пользователи
    op.create_table(
        'users',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('telegram_user_id', sa.BigInteger(), nullable=False),
        sa.Column('username', sa.String(length=255), nullable=True),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('phone_number', sa.String(length=64), nullable=True),
        sa.Column('role', sa.String(length=20), server_default='unverified', nullable=False),
        sa.Column('is_verified', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('class_id', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_telegram_user_id', 'users', ['telegram_user_id'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_class_id', 'users', ['class_id'])

    # Новости и отчеты
    op.create_table(
        'news',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('class_id', sa.BigInteger(), nullable=False),
        sa.Column('author_telegram_user_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), server_default='', nullable=False),
        sa.Column('type', sa.String(length=20), server_default='news', nullable=False),
        sa.Column('file_path', sa.String(length=512), nullable=True),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_news_id', 'news', ['id'])
    op.create_index('idx_news_class_type_created', 'news', ['class_id', 'type', 'created_at'])

    # Заявки родителей
    op.create_table(
        'parent_verifications',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('telegram_user_id', sa.BigInteger(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('phone_number', sa.String(length=64), nullable=True),
        sa.Column('class_id', sa.BigInteger(), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('processed_by_telegram_user_id', sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_parent_verifications_id', 'parent_verifications', ['id'])
    op.create_index('ix_parent_verifications_telegram_user_id', 'parent_verifications', ['telegram_user_id'])
    op.create_index('idx_verification_class_status', 'parent_verifications', ['class_id', 'status'])

    # Привязки родителей к классам
    op.create_table(
        'parent_class_links',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('class_id', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'class_id', name='uq_parent_class_link'),
    )
    op.create_index('ix_parent_class_links_id', 'parent_class_links', ['id'])
    op.create_index('ix_parent_class_links_user_id', 'parent_class_links', ['user_id'])
    op.create_index('ix_parent_class_links_class_id', 'parent_class_links', ['class_id'])


def downgrade():
    op.drop_table('parent_class_links')
    op.drop_table('parent_verifications')
    op.drop_table('news')
    op.drop_table('users')
    op.drop_table('classes')
