"""initial_schema_baseline

Revision ID: a1f3c9d2e7b4
Revises:
Create Date: 2026-10-19 09:00:00.000000

Baseline migration: creates every table from the current model definitions,
then adds the check constraints that the models do not declare.
"""
from typing import Sequence, Union
import sys
import os

# Add src directory to path to import models
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from alembic import op

# Import all models to ensure they're registered with Base.metadata
from core.database import Base
import models  # noqa: F401


# revision identifiers, used by Alembic.
revision: str = 'a1f3c9d2e7b4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


CHECK_CONSTRAINTS = [
    (
        'check_appointment_status',
        'appointments',
        "status IN ('TO_CONFIRM', 'CONFIRMED', 'IN_WAITING', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', 'NO_SHOW')",
    ),
    ('check_user_role', 'users', "role IN ('admin', 'manager', 'secretary', 'patient')"),
    ('check_availability_day', 'doctor_availability_windows', "day_of_week BETWEEN 1 AND 7"),
    ('check_availability_range', 'doctor_availability_windows', "end_minute > start_minute"),
    ('check_weekly_closure_day', 'practice_weekly_closures', "day_of_week BETWEEN 1 AND 7"),
    ('check_stock_movement_type', 'stock_movements', "movement IN ('IN', 'OUT')"),
    ('check_stock_movement_quantity', 'stock_movements', "quantity > 0"),
    ('check_finance_entry_type', 'finance_entries', "type IN ('INCOME', 'EXPENSE')"),
    ('check_recall_rule_interval', 'recall_rules', "interval_days > 0"),
]


def upgrade() -> None:
    """
    Create all tables from the SQLAlchemy models.

    Check constraints are skipped on SQLite, which cannot add them to an
    existing table.
    """
    bind = op.get_bind()
    Base.metadata.create_all(bind=bind)

    if bind.dialect.name == 'sqlite':
        return
    for name, table, condition in CHECK_CONSTRAINTS:
        op.create_check_constraint(name, table, condition)


def downgrade() -> None:
    """Drop every table."""
    Base.metadata.drop_all(bind=op.get_bind())
