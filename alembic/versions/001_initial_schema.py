"""Initial schema — agents, leads, assignment rules.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Agents
    op.create_table(
        "agents",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column(
            "specializations", ARRAY(sa.String(30)), nullable=False, server_default="{}"
        ),
        sa.Column("max_capacity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("current_lead_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("conversion_rate_pct", sa.Float, nullable=False, server_default="0"),
        sa.Column(
            "avg_response_time_minutes", sa.Float, nullable=False, server_default="60"
        ),
        sa.Column("closed_deals", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "availability", sa.String(20), nullable=False, server_default="Available"
        ),
    )
    op.create_index("idx_agents_availability", "agents", ["availability"])

    # Leads
    op.create_table(
        "leads",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("property_type", sa.String(30), nullable=True),
        sa.Column("preferred_location", sa.String(200), nullable=True),
        sa.Column("budget_min", sa.Float, nullable=True),
        sa.Column("budget_max", sa.Float, nullable=True),
        sa.Column("lead_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("source", sa.String(100), nullable=True),
        sa.Column("assigned_agent_id", sa.String(64), nullable=True),
        sa.Column(
            "updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("idx_leads_assigned_agent", "leads", ["assigned_agent_id"])

    # Assignment rules
    op.create_table(
        "assignment_rules",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("rule_type", sa.String(20), nullable=False),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("rule_data", sa.JSON, nullable=False),
        sa.Column("conditions", sa.JSON, nullable=False),
        sa.Column(
            "updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index(
        "idx_assignment_rules_type_position", "assignment_rules", ["rule_type", "position"]
    )


def downgrade() -> None:
    op.drop_table("assignment_rules")
    op.drop_table("leads")
    op.drop_table("agents")
