"""initial_schema_baseline

Revision ID: 5b1e2c7d9a40
Revises: 
Create Date: 2026-10-19 10:12:31.208114

Creates the account tables (identities, clinics, profiles, members,
pending_signups, password_resets, invites, google_integrations) from the
current model definitions, plus the PostgreSQL-only indexes and checks.
"""
from typing import Sequence, Union
import sys
import os

# Add src directory to path to import models
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from alembic import op
import sqlalchemy as sa

# Import all models to ensure they're registered with Base.metadata
from core.database import Base
import models  # noqa: F401


# revision identifiers, used by Alembic.
revision: str = '5b1e2c7d9a40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create all tables from the models, then add PostgreSQL optimizations.

    - Case-insensitive unique clinic names (backs the name pre-check)
    - GIN index on profile roles
    - Check constraint on clinic subscription status
    """
    bind = op.get_bind()
    Base.metadata.create_all(bind=bind)

    if bind.dialect.name != "postgresql":
        return

    op.create_index(
        'idx_clinics_name_lower',
        'clinics',
        [sa.text('lower(name)')],
        unique=True,
    )

    op.create_index(
        'idx_profiles_roles_gin',
        'profiles',
        ['roles'],
        postgresql_using='gin'
    )

    op.create_check_constraint(
        'check_clinic_subscription_status',
        'clinics',
        "subscription_status IN ('trial', 'pending_payment', 'active', 'past_due', 'canceled')"
    )


def downgrade() -> None:
    """Drop all account tables."""
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.drop_constraint('check_clinic_subscription_status', 'clinics', type_='check')
        op.drop_index('idx_profiles_roles_gin', table_name='profiles')
        op.drop_index('idx_clinics_name_lower', table_name='clinics')

    Base.metadata.drop_all(bind=bind)
