from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import expression

naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    # avoid constraint_name token to allow unnamed CheckConstraint
    "ck": "ck_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=naming_convention)


class Base(DeclarativeBase):
    metadata = metadata


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_case_id() -> str:
    return str(uuid4())


class MedicalCase(Base):
    __tablename__ = "medical_cases"

    id = Column(String(36), primary_key=True, default=new_case_id)
    user_id = Column(String, nullable=True)
    image_name = Column(String, nullable=False)
    image_data = Column(Text, nullable=True)
    storage_path = Column(String, nullable=True)
    patient_name = Column(String, nullable=True)
    patient_id = Column(String, nullable=True)
    patient_age = Column(Integer, nullable=True)
    patient_gender = Column(String, nullable=True)
    institution_name = Column(String, nullable=True)
    modality = Column(String, nullable=True)
    body_part = Column(String, nullable=True)
    study_date = Column(String, nullable=True)
    status = Column(String, nullable=False, default="open", server_default="open")
    priority = Column(String, nullable=True)
    severity_rating = Column(Integer, nullable=True)
    confidence_score = Column(Integer, nullable=True)
    findings = Column(Text, nullable=True)
    recommendations = Column(Text, nullable=True)
    radiologist_notes = Column(Text, nullable=True)
    comment = Column(Text, nullable=True)
    assigned_radiologist = Column(String, nullable=True)
    source = Column(String, nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    processed_at = Column(DateTime(timezone=True), nullable=True)
    completion_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("severity_rating is null or severity_rating between 0 and 10", name="ck_medical_cases_severity"),
        CheckConstraint(
            "confidence_score is null or confidence_score between 0 and 100",
            name="ck_medical_cases_confidence",
        ),
        Index("ix_medical_cases_user_id_created_at", "user_id", "created_at"),
        Index("ix_medical_cases_is_archived", "is_archived"),
    )
