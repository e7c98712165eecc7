"""Table definitions for daily issue snapshots."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKeyConstraint,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

# One row per (issue, day). A day's rows are always the complete snapshot.
issues = Table(
    "issues",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("datestamp", Date, primary_key=True),
    Column("component", String(255), nullable=False, default=""),
    Column("target_release", String(255), nullable=False, default=""),
    Column("assigned_to", String(255), nullable=False, default=""),
    Column("status", String(64), nullable=False, default=""),
    Column("summary", Text, nullable=False, default=""),
    Column("cf_pm_score", Integer, nullable=False, default=0),
    Column("externals", Text, nullable=False, default="[]"),
    # Derived from externals at ingest time
    Column("customer_case", Boolean, nullable=False, default=False),
    Index("ix_issues_datestamp_target", "datestamp", "target_release"),
)

issue_keywords = Table(
    "issue_keywords",
    metadata,
    Column("issue_id", Integer, primary_key=True, autoincrement=False),
    Column("datestamp", Date, primary_key=True),
    Column("keyword", String(255), primary_key=True),
    ForeignKeyConstraint(
        ["issue_id", "datestamp"], ["issues.id", "issues.datestamp"]
    ),
)
