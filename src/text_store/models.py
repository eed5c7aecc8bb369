"""
Data model for the text store.

A TextRecord is the parent entity (title, description, audit fields). A
LocalizedEntry holds the one-word text of a single language. A
MultiLangRecord aggregates one TextRecord with its entries in insertion
order and enforces that no two entries share a language code.

JSON shape (one element of a snapshot):

    {
      "model": {"id": ..., "title": ..., "description": ...,
                "createdAt": ..., "createdBy": ...,
                "modifiedAt": ..., "modifiedBy": ...},
      "localizedTexts": [
        {"id": ..., "languageCode": "EN", "text": "Hello", ...}
      ]
    }
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .errors import DuplicateError, ValidationError
from .languages import LanguageCode

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def parse_timestamp(value: Any, field_name: str = "timestamp") -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp.

    Naive values are taken as UTC. A trailing "Z" is accepted.

    Raises:
        ValidationError: If the value is not a valid timestamp.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(
                f"Invalid {field_name} <{value}>", context={"field": field_name}
            )
    else:
        raise ValidationError(
            f"Invalid {field_name} <{value}>", context={"field": field_name}
        )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Field '{key}' must be a string", context={"field": key})
    return value


@dataclass
class TextRecord:
    """The parent text entity."""

    id: str = ""
    title: str = ""
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    modified_at: Optional[datetime] = None
    modified_by: Optional[str] = None

    def copy(self) -> "TextRecord":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "createdAt": format_timestamp(self.created_at),
            "createdBy": self.created_by,
            "modifiedAt": format_timestamp(self.modified_at),
            "modifiedBy": self.modified_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextRecord":
        if not isinstance(data, dict):
            raise ValidationError("Text must be a JSON object")
        return cls(
            id=_optional_str(data, "id") or "",
            title=_optional_str(data, "title") or "",
            description=_optional_str(data, "description"),
            created_at=parse_timestamp(data.get("createdAt"), "createdAt"),
            created_by=_optional_str(data, "createdBy"),
            modified_at=parse_timestamp(data.get("modifiedAt"), "modifiedAt"),
            modified_by=_optional_str(data, "modifiedBy"),
        )


@dataclass
class LocalizedEntry:
    """The text of one record in one language."""

    id: str = ""
    language_code: Optional[LanguageCode] = None
    text: str = ""
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    modified_at: Optional[datetime] = None
    modified_by: Optional[str] = None

    def copy(self) -> "LocalizedEntry":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "languageCode": self.language_code.value if self.language_code else None,
            "text": self.text,
            "createdAt": format_timestamp(self.created_at),
            "createdBy": self.created_by,
            "modifiedAt": format_timestamp(self.modified_at),
            "modifiedBy": self.modified_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalizedEntry":
        if not isinstance(data, dict):
            raise ValidationError("Localized text must be a JSON object")
        raw_code = data.get("languageCode")
        return cls(
            id=_optional_str(data, "id") or "",
            language_code=LanguageCode.parse(raw_code) if raw_code else None,
            text=_optional_str(data, "text") or "",
            created_at=parse_timestamp(data.get("createdAt"), "createdAt"),
            created_by=_optional_str(data, "createdBy"),
            modified_at=parse_timestamp(data.get("modifiedAt"), "modifiedAt"),
            modified_by=_optional_str(data, "modifiedBy"),
        )


class MultiLangRecord:
    """
    One TextRecord together with its localized entries.

    Entries keep insertion order. At most one entry per language code.
    """

    def __init__(
        self,
        model: TextRecord,
        entries: Optional[Iterable[LocalizedEntry]] = None,
    ):
        self.model = model
        self._entries: List[LocalizedEntry] = []
        for entry in entries or []:
            self.add_entry(entry)

    @property
    def id(self) -> str:
        return self.model.id

    @property
    def entries(self) -> List[LocalizedEntry]:
        """A shallow copy of the entry list, in insertion order."""
        return list(self._entries)

    def __iter__(self) -> Iterator[LocalizedEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiLangRecord):
            return NotImplemented
        return self.model == other.model and self._entries == other._entries

    def __repr__(self) -> str:
        codes = ", ".join(str(e.language_code) for e in self._entries)
        return f"<MultiLangRecord {self.id} [{codes}]>"

    def add_entry(self, entry: LocalizedEntry) -> None:
        """
        Append an entry.

        Raises:
            DuplicateError: If an entry with the same language code exists.
        """
        self.insert_entry(len(self._entries), entry)

    def insert_entry(self, position: int, entry: LocalizedEntry) -> None:
        """Put an entry back at a given position; same language rule as add_entry."""
        if self.contains_language(entry.language_code):
            raise DuplicateError(
                f"text <{self.id}> already has a localized text in <{entry.language_code}>",
                context={"text_id": self.id, "language_code": str(entry.language_code)},
            )
        self._entries.insert(position, entry)

    def index_of(self, entry_id: str) -> Optional[int]:
        """Position of an entry in insertion order, or None."""
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return index
        return None

    def remove_entry(self, entry_id: str) -> Optional[LocalizedEntry]:
        """Remove an entry by id; returns it, or None if it is not in this record."""
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return self._entries.pop(index)
        return None

    def contains_language(self, language_code: Optional[LanguageCode]) -> bool:
        return self.get_entry(language_code) is not None

    def get_entry(self, language_code: Optional[LanguageCode]) -> Optional[LocalizedEntry]:
        """Return the entry in the given language, or None."""
        for entry in self._entries:
            if entry.language_code == language_code:
                return entry
        return None

    def find_entry(self, entry_id: str) -> Optional[LocalizedEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def copy(self) -> "MultiLangRecord":
        """Deep copy: model and entries are copied."""
        return MultiLangRecord(self.model.copy(), [e.copy() for e in self._entries])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model.to_dict(),
            "localizedTexts": [entry.to_dict() for entry in self._entries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MultiLangRecord":
        if not isinstance(data, dict) or "model" not in data:
            raise ValidationError("Snapshot element must be an object with a 'model' key")
        entries = [LocalizedEntry.from_dict(item) for item in data.get("localizedTexts") or []]
        return cls(TextRecord.from_dict(data["model"]), entries)
