"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from leadrouter.adapters.persistence.database import Base


class AgentModel(Base):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    specializations: Mapped[list[str]] = mapped_column(
        ARRAY(String(30)), nullable=False, default=list
    )
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_lead_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    conversion_rate_pct: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_response_time_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=60.0)
    closed_deals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    availability: Mapped[str] = mapped_column(String(20), nullable=False, default="Available")

    __table_args__ = (Index("idx_agents_availability", "availability"),)


class LeadModel(Base):
    __tablename__ = "leads"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    property_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    preferred_location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    budget_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    budget_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    lead_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assigned_agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_leads_assigned_agent", "assigned_agent_id"),)


class AssignmentRuleModel(Base):
    __tablename__ = "assignment_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: uuid4().hex)
    rule_type: Mapped[str] = mapped_column(String(20), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rule_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    conditions: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_assignment_rules_type_position", "rule_type", "position"),)
