from __future__ import annotations


class CaseDeskError(Exception):
    """Base class for errors surfaced by the case desk engine."""


class AuthError(CaseDeskError):
    def __init__(self, message: str = "No signed-in user") -> None:
        super().__init__(message)


class StoreError(CaseDeskError):
    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class CaseNotFoundError(CaseDeskError, LookupError):
    def __init__(self, case_id: str) -> None:
        super().__init__(f"Case not found: {case_id}")
        self.case_id = case_id
