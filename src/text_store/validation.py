"""
Validation and id-assignment rules shared by record and entry operations.

Rules:
- Ids are always generated on the server (uuid4). A candidate carrying a
  non-empty id is rejected: DuplicateError if the id is already taken,
  InvalidClientSuppliedIdError otherwise.
- A record needs a non-empty title.
- An entry needs a language code and a text made of exactly one
  whitespace-delimited word.
- createdAt / createdBy never change after creation. Values supplied by the
  client are compared, reported as warnings and discarded.
"""

import logging
import uuid
from typing import Container, List, Optional, Union

from .errors import (
    DuplicateError,
    InvalidClientSuppliedIdError,
    ValidationError,
)
from .models import LocalizedEntry, TextRecord

logger = logging.getLogger(__name__)


def generate_id() -> str:
    """Generate a new globally unique id."""
    return str(uuid.uuid4())


def check_client_supplied_id(candidate_id: Optional[str], taken: Container[str], kind: str) -> None:
    """
    Reject ids chosen by the client.

    Args:
        candidate_id: The id carried by the candidate, possibly empty.
        taken: The ids already present in the relevant index.
        kind: Resource name used in messages ("text", "localized text").

    Raises:
        DuplicateError: If the id is already present.
        InvalidClientSuppliedIdError: If the id is non-empty but unknown.
    """
    if not candidate_id:
        return
    if candidate_id in taken:
        raise DuplicateError(
            f"{kind} <{candidate_id}> exists already.",
            context={"id": candidate_id},
        )
    raise InvalidClientSuppliedIdError(
        f"{kind} <{candidate_id}> contains an ID generated on the client. This is not allowed.",
        context={"id": candidate_id},
    )


def validate_title(record: TextRecord, record_id: str = "") -> None:
    """Raise ValidationError unless the record has a non-empty title."""
    if not record.title or not record.title.strip():
        raise ValidationError(
            f"text <{record_id}> must contain a valid title.",
            context={"id": record_id, "field": "title"},
        )


def validate_entry_text(text: Optional[str], entry_id: str = "") -> None:
    """Raise ValidationError unless the text is exactly one word."""
    if not text or not text.strip():
        raise ValidationError(
            f"localized text <{entry_id}> must contain a valid text.",
            context={"id": entry_id, "field": "text"},
        )
    words = text.split()
    if len(words) != 1:
        raise ValidationError(
            f"localized text <{entry_id}> must contain exactly one word, found {len(words)}.",
            context={"id": entry_id, "field": "text", "words": len(words)},
        )


def validate_language_code(entry: LocalizedEntry, entry_id: str = "") -> None:
    if entry.language_code is None:
        raise ValidationError(
            f"localized text <{entry_id}> must contain a valid languageCode.",
            context={"id": entry_id, "field": "languageCode"},
        )


def validate_page(offset: int, limit: int) -> None:
    if offset < 0:
        raise ValidationError(f"position must not be negative, got {offset}", context={"position": offset})
    if limit < 0:
        raise ValidationError(f"size must not be negative, got {limit}", context={"size": limit})


def discard_immutable_audit(
    stored: Union[TextRecord, LocalizedEntry],
    patch: Union[TextRecord, LocalizedEntry],
    kind: str,
) -> List[str]:
    """
    Compare createdAt/createdBy of a patch with the stored values.

    Differing values supplied by the client are logged as warnings and
    never applied. Missing values are not reported.

    Returns:
        The names of the discarded fields.
    """
    discarded = []
    if patch.created_at is not None and patch.created_at != stored.created_at:
        logger.warning(
            f"{kind} <{stored.id}>: ignoring createdAt value <{patch.created_at.isoformat()}> "
            "because it was set on the client."
        )
        discarded.append("createdAt")
    if patch.created_by is not None and (
        stored.created_by is None or patch.created_by.lower() != stored.created_by.lower()
    ):
        logger.warning(
            f"{kind} <{stored.id}>: ignoring createdBy value <{patch.created_by}> "
            "because it was set on the client."
        )
        discarded.append("createdBy")
    return discarded


def discard_client_audit(candidate: Union[TextRecord, LocalizedEntry], kind: str) -> List[str]:
    """Warn about audit fields a client set on a resource being created."""
    discarded = [
        name
        for name, value in (
            ("createdAt", candidate.created_at),
            ("createdBy", candidate.created_by),
            ("modifiedAt", candidate.modified_at),
            ("modifiedBy", candidate.modified_by),
        )
        if value is not None
    ]
    if discarded:
        logger.warning(
            f"new {kind}: ignoring client supplied {', '.join(discarded)} "
            "because audit fields are set on the server."
        )
    return discarded
