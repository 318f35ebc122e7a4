"""baseline_schema

Revision ID: 3c1d9a7e5b20
Revises:
Create Date: 2026-10-19 10:12:41.118204

Production-safe migration: Only creates tables that don't exist yet.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3c1d9a7e5b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    # Create profiles table
    if not table_exists('profiles'):
        op.create_table('profiles',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=True),
            sa.Column('password_hash', sa.String(), nullable=False),
            sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('subscription_status', sa.String(), nullable=False, server_default='free'),
            sa.Column('subscription_id', sa.String(), nullable=True),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('is_blocked', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('session_version', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_profiles_email'), 'profiles', ['email'], unique=True)
        op.create_index(op.f('ix_profiles_id'), 'profiles', ['id'], unique=False)
        op.create_index(op.f('ix_profiles_subscription_id'), 'profiles', ['subscription_id'], unique=False)

    # Create admin_users table
    if not table_exists('admin_users'):
        op.create_table('admin_users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('role', sa.String(), nullable=False, server_default='admin'),
            sa.Column('permissions', sa.JSON(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id')
        )
        op.create_index(op.f('ix_admin_users_id'), 'admin_users', ['id'], unique=False)

    # Create billing_plans table
    if not table_exists('billing_plans'):
        op.create_table('billing_plans',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('description', sa.Text(), nullable=False, server_default=''),
            sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
            sa.Column('currency', sa.String(length=3), nullable=False, server_default='usd'),
            sa.Column('interval_type', sa.String(), nullable=False, server_default='one_time'),
            sa.Column('credits', sa.Integer(), nullable=True),
            sa.Column('features', sa.JSON(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('stripe_product_id', sa.String(), nullable=True),
            sa.Column('stripe_price_id', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('stripe_product_id')
        )
        op.create_index(op.f('ix_billing_plans_id'), 'billing_plans', ['id'], unique=False)
        op.create_index(op.f('ix_billing_plans_name'), 'billing_plans', ['name'], unique=False)

    # Create resumes table
    if not table_exists('resumes'):
        op.create_table('resumes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('filename', sa.String(), nullable=False),
            sa.Column('file_path', sa.String(), nullable=False),
            sa.Column('file_url', sa.String(), nullable=True),
            sa.Column('file_size', sa.Integer(), nullable=False),
            sa.Column('file_type', sa.String(), nullable=False),
            sa.Column('status', sa.String(), nullable=False, server_default='pending'),
            sa.Column('confidence_score', sa.Integer(), nullable=True),
            sa.Column('ai_summary', sa.Text(), nullable=True),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_resume_status_updated', 'resumes', ['status', 'updated_at'], unique=False)
        op.create_index(op.f('ix_resumes_id'), 'resumes', ['id'], unique=False)
        op.create_index(op.f('ix_resumes_status'), 'resumes', ['status'], unique=False)
        op.create_index(op.f('ix_resumes_user_id'), 'resumes', ['user_id'], unique=False)

    # Create parsed_data table
    if not table_exists('parsed_data'):
        op.create_table('parsed_data',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('resume_id', sa.Integer(), nullable=False),
            sa.Column('personal_info', sa.JSON(), nullable=False),
            sa.Column('experience', sa.JSON(), nullable=False),
            sa.Column('education', sa.JSON(), nullable=False),
            sa.Column('skills', sa.JSON(), nullable=False),
            sa.Column('certifications', sa.JSON(), nullable=False),
            sa.Column('projects', sa.JSON(), nullable=False),
            sa.Column('summary', sa.Text(), nullable=True),
            sa.Column('confidence_score', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.ForeignKeyConstraint(['resume_id'], ['resumes.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('resume_id')
        )
        op.create_index(op.f('ix_parsed_data_id'), 'parsed_data', ['id'], unique=False)

    # Create credit_transactions table
    if not table_exists('credit_transactions'):
        op.create_table('credit_transactions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('amount', sa.Integer(), nullable=False),
            sa.Column('type', sa.String(), nullable=False),
            sa.Column('description', sa.String(), nullable=True),
            sa.Column('resume_id', sa.Integer(), nullable=True),
            sa.Column('external_ref', sa.String(), nullable=True),
            sa.Column('is_reset', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['resume_id'], ['resumes.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('external_ref')
        )
        op.create_index('idx_credit_tx_user_created', 'credit_transactions', ['user_id', 'created_at'], unique=False)
        op.create_index(op.f('ix_credit_transactions_created_at'), 'credit_transactions', ['created_at'], unique=False)
        op.create_index(op.f('ix_credit_transactions_id'), 'credit_transactions', ['id'], unique=False)
        op.create_index(op.f('ix_credit_transactions_type'), 'credit_transactions', ['type'], unique=False)
        op.create_index(op.f('ix_credit_transactions_user_id'), 'credit_transactions', ['user_id'], unique=False)

    # Create settings table
    if not table_exists('settings'):
        op.create_table('settings',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('category', sa.String(), nullable=False),
            sa.Column('key', sa.String(), nullable=False),
            sa.Column('value', sa.JSON(), nullable=True),
            sa.Column('description', sa.String(), nullable=True),
            sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('category', 'key', name='uq_settings_category_key')
        )
        op.create_index(op.f('ix_settings_id'), 'settings', ['id'], unique=False)


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    for table_name in (
        'settings',
        'credit_transactions',
        'parsed_data',
        'resumes',
        'billing_plans',
        'admin_users',
        'profiles',
    ):
        if table_exists(table_name):
            op.drop_table(table_name)
