"""Medical cases table"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_medical_cases"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "medical_cases",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("image_name", sa.String(), nullable=False),
        sa.Column("image_data", sa.Text(), nullable=True),
        sa.Column("storage_path", sa.String(), nullable=True),
        sa.Column("patient_name", sa.String(), nullable=True),
        sa.Column("patient_id", sa.String(), nullable=True),
        sa.Column("patient_age", sa.Integer(), nullable=True),
        sa.Column("patient_gender", sa.String(), nullable=True),
        sa.Column("institution_name", sa.String(), nullable=True),
        sa.Column("modality", sa.String(), nullable=True),
        sa.Column("body_part", sa.String(), nullable=True),
        sa.Column("study_date", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="open"),
        sa.Column("priority", sa.String(), nullable=True),
        sa.Column("severity_rating", sa.Integer(), nullable=True),
        sa.Column("confidence_score", sa.Integer(), nullable=True),
        sa.Column("findings", sa.Text(), nullable=True),
        sa.Column("recommendations", sa.Text(), nullable=True),
        sa.Column("radiologist_notes", sa.Text(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("assigned_radiologist", sa.String(), nullable=True),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")
        ),
        sa.CheckConstraint(
            "severity_rating is null or severity_rating between 0 and 10", name="ck_medical_cases_severity"
        ),
        sa.CheckConstraint(
            "confidence_score is null or confidence_score between 0 and 100", name="ck_medical_cases_confidence"
        ),
    )

    op.create_index("ix_medical_cases_user_id_created_at", "medical_cases", ["user_id", "created_at"], unique=False)
    op.create_index("ix_medical_cases_is_archived", "medical_cases", ["is_archived"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_medical_cases_is_archived", table_name="medical_cases")
    op.drop_index("ix_medical_cases_user_id_created_at", table_name="medical_cases")
    op.drop_table("medical_cases")
