from __future__ import annotations

from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from casedesk.infrastructure.db.models_sqlalchemy import MedicalCase

_SORTABLE = {"created_at", "updated_at", "processed_at", "severity_rating", "confidence_score"}


class MedicalCaseRepository:
    def list_visible(
        self,
        session: Session,
        *,
        owner_id: str,
        order_by: str = "created_at",
        descending: bool = True,
        include_archived: bool = False,
    ) -> list[MedicalCase]:
        if order_by not in _SORTABLE:
            raise ValueError(f"Unsupported sort column: {order_by}")
        column = getattr(MedicalCase, order_by)
        stmt = select(MedicalCase).where(or_(MedicalCase.user_id == owner_id, MedicalCase.user_id.is_(None)))
        if not include_archived:
            stmt = stmt.where(MedicalCase.is_archived.is_(False))
        stmt = stmt.order_by(column.desc() if descending else column.asc(), MedicalCase.id)
        return list(session.execute(stmt).scalars())

    def get_by_id(self, session: Session, case_id: str) -> MedicalCase | None:
        return session.get(MedicalCase, case_id)

    def create(self, session: Session, values: dict[str, Any]) -> MedicalCase:
        case = MedicalCase(**_known_columns(values))
        session.add(case)
        session.flush()
        return case

    def update(self, session: Session, case: MedicalCase, values: dict[str, Any]) -> MedicalCase:
        for key, value in _known_columns(values).items():
            if key == "id":
                continue
            setattr(case, key, value)
        session.flush()
        return case

    def delete(self, session: Session, case: MedicalCase) -> None:
        session.delete(case)
        session.flush()


def case_to_row(case: MedicalCase) -> dict[str, Any]:
    return {column.name: getattr(case, column.name) for column in MedicalCase.__table__.columns}


def _known_columns(values: dict[str, Any]) -> dict[str, Any]:
    columns = MedicalCase.__table__.columns.keys()
    return {key: value for key, value in values.items() if key in columns}
