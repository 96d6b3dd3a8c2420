from typing import Dict, List, Optional


class ChoreAppError(Exception):
    """Base class for errors that map onto a client-facing HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationFailed(ChoreAppError):
    status_code = 400

    def __init__(
        self,
        field_errors: Optional[Dict[str, List[str]]] = None,
        form_errors: Optional[List[str]] = None,
    ):
        super().__init__("Validation failed")
        self.field_errors = field_errors or {}
        self.form_errors = form_errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(field_errors={field: [message]})

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "details": {
                "formErrors": self.form_errors,
                "fieldErrors": self.field_errors,
            },
        }


class NotFoundError(ChoreAppError):
    status_code = 404

    def __init__(self, thing: str):
        super().__init__(f"{thing} not found")


class ConflictError(ChoreAppError):
    status_code = 409
