"""
Schema validation at the Firestore boundary.

Firestore hands back plain dicts; nothing guarantees they match the shape the
game expects. Every read goes through validate_document, which yields a
ValidationResult instead of raising, so callers decide whether a bad
document is skipped, defaulted or surfaced.
"""
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


class DocumentValidationError(Exception):
    def __init__(self, collection: str, doc_id: Optional[str], errors: List[Dict[str, Any]]):
        self.collection = collection
        self.doc_id = doc_id
        self.errors = errors
        fields = ", ".join(".".join(str(p) for p in e.get("loc", ())) or "<root>" for e in errors)
        super().__init__(f"{collection}/{doc_id or '?'} failed validation: {fields}")


@dataclass(frozen=True)
class ValidationResult(Generic[M]):
    value: Optional[M] = None
    error: Optional[DocumentValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> M:
        if self.error is not None:
            raise self.error
        return self.value


def validate_document(
    model: Type[M],
    data: Optional[Dict[str, Any]],
    *,
    collection: str,
    doc_id: Optional[str] = None,
) -> ValidationResult[M]:
    """
    Validate a raw document dict against `model`.
    The Firestore document id is injected as `id` when the model has one
    and the payload does not carry its own.
    """
    payload: Dict[str, Any] = dict(data or {})
    if doc_id is not None and "id" in model.model_fields and not payload.get("id"):
        payload["id"] = doc_id
    try:
        return ValidationResult(value=model.model_validate(payload))
    except ValidationError as exc:
        return ValidationResult(
            error=DocumentValidationError(collection, doc_id, exc.errors(include_url=False))
        )
