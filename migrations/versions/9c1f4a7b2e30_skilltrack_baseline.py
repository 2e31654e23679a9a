"""skilltrack_baseline

Creates every table from skilltrack/db/schema.sql.
For databases created before migrations were introduced, stamp instead:
    alembic stamp 9c1f4a7b2e30

Revision ID: 9c1f4a7b2e30
Revises:
Create Date: 2026-10-18 09:12:40.118203

"""
from typing import Sequence, Union
from pathlib import Path

from alembic import op
import sqlalchemy as sa


revision: str = "9c1f4a7b2e30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Children before parents
TABLES = [
    "progress_alerts",
    "hackathon_participants",
    "hackathons",
    "recommendations",
    "user_module_progress",
    "learning_modules",
    "user_assessments",
    "assessments",
    "profiles",
    "users",
]


def _adapt_sql(sql: str, dialect_name: str) -> str:
    if dialect_name == "postgresql":
        sql = sql.replace("INTEGER PRIMARY KEY AUTOINCREMENT", "SERIAL PRIMARY KEY")
    return sql


def upgrade() -> None:
    """Execute schema.sql statement by statement (CREATE ... IF NOT EXISTS throughout)."""
    dialect_name = op.get_bind().dialect.name

    schema_path = Path(__file__).resolve().parents[2] / "skilltrack" / "db" / "schema.sql"
    for statement in schema_path.read_text().split(";"):
        lines = [
            line for line in statement.splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        cleaned = "\n".join(lines).strip()
        if cleaned:
            op.execute(sa.text(_adapt_sql(cleaned, dialect_name)))


def downgrade() -> None:
    for table in TABLES:
        op.execute(sa.text(f"DROP TABLE IF EXISTS {table}"))
