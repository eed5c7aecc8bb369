"""
In-memory text store with a primary and a secondary index.

The primary index maps a record id to its MultiLangRecord (the record and
its localized entries). The secondary index maps every entry id to the id
of the owning record and the entry object held in that record's sequence,
so an entry can be found without knowing its parent.

Concurrency:
============
One re-entrant lock guards both indices. Every public operation runs
entirely under the lock, including the snapshot write, so a reader never
observes one index updated without the other, and snapshots are written in
the order the mutations happened. When the snapshot write fails the
mutation is undone before the lock is released and the PersistenceError
reaches the caller. There is no optimistic concurrency
token: two concurrent updates of the same record resolve as last write
wins.

Values returned to callers are copies; stored objects never leave the
store.

Ordering:
=========
- Records: (title case-folded, createdAt, id)
- Entries: (languageCode, createdAt, id)
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Union

from .config import Config
from .errors import (
    ConfigurationError,
    DuplicateError,
    IntegrityFault,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .integrity import EntryRef, IntegrityReport, run_integrity_check
from .languages import LanguageCode
from .models import LocalizedEntry, MultiLangRecord, TextRecord, utcnow
from .persistence import JsonSnapshotGateway, PersistenceGateway
from .validation import (
    check_client_supplied_id,
    discard_client_audit,
    discard_immutable_audit,
    generate_id,
    validate_entry_text,
    validate_language_code,
    validate_page,
    validate_title,
)

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "DUMMY_USER"
DEFAULT_PAGE_SIZE = 25

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)

LanguageFilter = Optional[Union[str, LanguageCode]]


def record_sort_key(record: MultiLangRecord):
    model = record.model
    return (model.title.casefold(), model.created_at or _EARLIEST, model.id)


def entry_sort_key(entry: LocalizedEntry):
    code = entry.language_code.value if entry.language_code else ""
    return (code, entry.created_at or _EARLIEST, entry.id)


def _pretty(obj) -> str:
    return json.dumps(obj.to_dict(), ensure_ascii=False, sort_keys=True)


def _parse_filter(language: LanguageFilter) -> Optional[LanguageCode]:
    if language is None or language == "":
        return None
    return LanguageCode.parse(language)


class TextStore:
    """
    Texts and their localized entries, kept in two mutually consistent maps.

    Args:
        gateway: Where snapshots are loaded from and saved to. None keeps
            everything in memory.
        persistent: Write a snapshot after every mutation. Defaults to
            True when a gateway is given. With False the gateway is only
            used to seed the store.
        actor_provider: Returns the identity stamped into createdBy and
            modifiedBy.
        clock: Returns the current time; defaults to UTC now.
        page_size: Default limit for list operations.
    """

    def __init__(
        self,
        gateway: Optional[PersistenceGateway] = None,
        persistent: Optional[bool] = None,
        actor_provider: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        if persistent is None:
            persistent = gateway is not None
        if persistent and gateway is None:
            raise ConfigurationError("A persistent text store needs a persistence gateway")

        self._gateway = gateway
        self.persistent = persistent
        self._actor_provider = actor_provider or (lambda: DEFAULT_ACTOR)
        self._clock = clock or utcnow
        self.page_size = page_size

        self._lock = threading.RLock()
        self._records: Dict[str, MultiLangRecord] = {}
        self._entries: Dict[str, EntryRef] = {}

        if gateway is not None:
            self.reload()

    # ------------------------------------------------------------------
    # Snapshot handling
    # ------------------------------------------------------------------

    def reload(self) -> int:
        """
        Rebuild both indices from the gateway's snapshot.

        The current indices are replaced only if the snapshot is
        consistent.

        Returns:
            Number of records loaded.

        Raises:
            IntegrityFault: On duplicate record ids, duplicate entry ids or
                two entries of one language in a record.
        """
        if self._gateway is None:
            return len(self)

        with self._lock:
            loaded = self._gateway.load()
            records: Dict[str, MultiLangRecord] = {}
            entries: Dict[str, EntryRef] = {}
            for record in loaded:
                if not record.id:
                    raise IntegrityFault("Snapshot contains a text without an id")
                if record.id in records:
                    raise IntegrityFault(
                        f"Snapshot contains text <{record.id}> twice",
                        context={"text_id": record.id},
                    )
                records[record.id] = record
                for entry in record:
                    if not entry.id:
                        raise IntegrityFault(
                            f"Snapshot text <{record.id}> has a localized text without an id",
                            context={"text_id": record.id},
                        )
                    if entry.id in entries:
                        raise IntegrityFault(
                            f"Snapshot contains localized text <{entry.id}> twice",
                            context={
                                "entry_id": entry.id,
                                "text_ids": [entries[entry.id].record_id, record.id],
                            },
                        )
                    entries[entry.id] = EntryRef(record.id, entry)

            self._records = records
            self._entries = entries
            logger.info(f"{len(records)} Texts imported.")
            return len(records)

    def _save(self, rollback: Callable[[], None]) -> None:
        """
        Write the snapshot after a mutation; undo the mutation if that fails.

        The caller holds the lock, so no reader sees the mutated state
        before it is rolled back.
        """
        if not self.persistent:
            return
        try:
            self._gateway.save(list(self._records.values()))
        except PersistenceError as e:
            rollback()
            logger.error(f"Snapshot write failed, change rolled back: {e.message}")
            raise

    def export(self) -> List[MultiLangRecord]:
        """Deep copies of all records, in primary index order."""
        with self._lock:
            return [record.copy() for record in self._records.values()]

    def check_integrity(self) -> IntegrityReport:
        """Audit the two indices against each other."""
        with self._lock:
            return run_integrity_check(self._records, self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[TextRecord]:
        return iter(self.list(limit=len(self)))

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    def entry_owner(self, entry_id: str) -> Optional[str]:
        """Id of the record owning an entry according to the secondary index."""
        with self._lock:
            ref = self._entries.get(entry_id)
            return ref.record_id if ref else None

    # ------------------------------------------------------------------
    # Internal lookups (caller holds the lock)
    # ------------------------------------------------------------------

    def _actor(self) -> str:
        return self._actor_provider() or DEFAULT_ACTOR

    def _new_id(self, taken) -> str:
        new_id = generate_id()
        while new_id in taken:
            new_id = generate_id()
        return new_id

    def _get_record(self, record_id: str) -> MultiLangRecord:
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(
                f"no text with ID <{record_id}> was found.",
                context={"text_id": record_id},
            )
        return record

    def _get_entry_ref(self, record_id: str, entry_id: str) -> EntryRef:
        self._get_record(record_id)
        ref = self._entries.get(entry_id)
        if ref is None:
            raise NotFoundError(
                f"no localized text with ID <{entry_id}> was found.",
                context={"text_id": record_id, "entry_id": entry_id},
            )
        return ref

    def _page(self, items: list, offset: int, limit: Optional[int]) -> list:
        if limit is None:
            limit = self.page_size
        validate_page(offset, limit)
        return items[offset:offset + limit]

    # ------------------------------------------------------------------
    # Texts
    # ------------------------------------------------------------------

    def list(
        self,
        language: LanguageFilter = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[TextRecord]:
        """
        Return one page of texts in ascending title order.

        Args:
            language: Only texts having a localized text in this language.
            offset: Index of the first text of the page.
            limit: Page size; the store's default when None.
        """
        code = _parse_filter(language)
        with self._lock:
            candidates = [
                record for record in self._records.values()
                if code is None or record.contains_language(code)
            ]
            candidates.sort(key=record_sort_key)
            page = [record.model.copy() for record in self._page(candidates, offset, limit)]
        logger.info(
            f"list(<{code}>, <{offset}>, <{limit}>) -> {len(page)} texts."
        )
        return page

    def create(self, candidate: TextRecord) -> TextRecord:
        """
        Create a text without localized texts.

        Raises:
            DuplicateError: If the candidate carries an existing id.
            InvalidClientSuppliedIdError: If it carries any other id.
            ValidationError: If the title is empty.
        """
        logger.info(f"create({_pretty(candidate)})")
        with self._lock:
            check_client_supplied_id(candidate.id, self._records, "text")
            record_id = self._new_id(self._records)
            validate_title(candidate, record_id)
            discard_client_audit(candidate, "text")

            now = self._clock()
            actor = self._actor()
            model = TextRecord(
                id=record_id,
                title=candidate.title,
                description=candidate.description,
                created_at=now,
                created_by=actor,
                modified_at=now,
                modified_by=actor,
            )
            self._records[record_id] = MultiLangRecord(model)
            self._save(lambda: self._records.pop(record_id, None))
            result = model.copy()
        logger.info(f"create() -> {_pretty(result)}")
        return result

    def read(self, record_id: str) -> TextRecord:
        with self._lock:
            result = self._get_record(record_id).model.copy()
        logger.info(f"read({record_id}) -> {_pretty(result)}")
        return result

    def update(self, record_id: str, patch: TextRecord) -> TextRecord:
        """
        Replace title and description of a text.

        createdAt/createdBy in the patch are ignored with a warning.

        Raises:
            NotFoundError: If the text does not exist.
            ValidationError: If the new title is empty.
        """
        with self._lock:
            record = self._get_record(record_id)
            model = record.model
            validate_title(patch, record_id)
            discard_immutable_audit(model, patch, "text")

            previous = model.copy()
            model.title = patch.title
            model.description = patch.description
            model.modified_at = self._clock()
            model.modified_by = self._actor()

            def rollback():
                record.model = previous

            self._save(rollback)
            result = model.copy()
        logger.info(f"update({record_id}) -> {_pretty(result)}")
        return result

    def delete(self, record_id: str) -> None:
        """
        Delete a text and all of its localized texts.

        Raises:
            NotFoundError: If the text does not exist.
            IntegrityFault: If one of its localized texts is missing from
                the entry index. Nothing is removed in that case.
        """
        with self._lock:
            record = self._get_record(record_id)
            children = record.entries
            for entry in children:
                ref = self._entries.get(entry.id)
                if ref is None or ref.record_id != record_id:
                    raise IntegrityFault(
                        f"localized text <{entry.id}> of text <{record_id}> is not indexed",
                        context={"text_id": record_id, "entry_id": entry.id},
                    )
            records_before = dict(self._records)
            entries_before = dict(self._entries)
            for entry in children:
                del self._entries[entry.id]
            del self._records[record_id]

            def rollback():
                self._records = records_before
                self._entries = entries_before

            self._save(rollback)
        logger.info(f"delete({record_id}) removed {len(children)} localized text(s)")

    # ------------------------------------------------------------------
    # Localized texts
    # ------------------------------------------------------------------

    def list_entries(
        self,
        record_id: str,
        language: LanguageFilter = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[LocalizedEntry]:
        """
        Return one page of a text's localized texts in language code order.

        Raises:
            NotFoundError: If the text does not exist.
        """
        code = _parse_filter(language)
        with self._lock:
            candidates = [
                entry for entry in self._get_record(record_id)
                if code is None or entry.language_code == code
            ]
            candidates.sort(key=entry_sort_key)
            page = [entry.copy() for entry in self._page(candidates, offset, limit)]
        logger.info(
            f"listEntries({record_id}, <{code}>, <{offset}>, <{limit}>) -> "
            f"{len(page)} localized texts."
        )
        return page

    def create_entry(self, record_id: str, candidate: LocalizedEntry) -> LocalizedEntry:
        """
        Add a localized text to a text.

        Raises:
            NotFoundError: If the text does not exist.
            DuplicateError: If the candidate carries an existing id, or the
                text already has a localized text in that language.
            InvalidClientSuppliedIdError: If the candidate carries any other id.
            ValidationError: If the language code is missing or the text is
                not exactly one word.
        """
        logger.info(f"createEntry({record_id}, {_pretty(candidate)})")
        with self._lock:
            record = self._get_record(record_id)
            check_client_supplied_id(candidate.id, self._entries, "localized text")
            entry_id = self._new_id(self._entries)
            validate_language_code(candidate, entry_id)
            validate_entry_text(candidate.text, entry_id)
            if record.contains_language(candidate.language_code):
                raise DuplicateError(
                    f"text <{record_id}> already has a localized text in <{candidate.language_code}>",
                    context={"text_id": record_id, "language_code": str(candidate.language_code)},
                )
            discard_client_audit(candidate, "localized text")

            now = self._clock()
            actor = self._actor()
            entry = LocalizedEntry(
                id=entry_id,
                language_code=candidate.language_code,
                text=candidate.text.strip(),
                created_at=now,
                created_by=actor,
                modified_at=now,
                modified_by=actor,
            )
            record.add_entry(entry)
            self._entries[entry_id] = EntryRef(record_id, entry)

            def rollback():
                record.remove_entry(entry_id)
                self._entries.pop(entry_id, None)

            self._save(rollback)
            result = entry.copy()
        logger.info(f"createEntry() -> {_pretty(result)}")
        return result

    def read_entry(self, record_id: str, entry_id: str) -> LocalizedEntry:
        """
        Look up a localized text by id.

        The text must exist, but the entry is found through the entry
        index alone; it is not required to belong to that text.
        """
        with self._lock:
            result = self._get_entry_ref(record_id, entry_id).entry.copy()
        logger.info(f"readEntry({record_id}, {entry_id}) -> {_pretty(result)}")
        return result

    def update_entry(self, record_id: str, entry_id: str, patch: LocalizedEntry) -> LocalizedEntry:
        """
        Replace the text of a localized text.

        Raises:
            NotFoundError: As for read_entry.
            ValidationError: If the text is not exactly one word or the
                patch changes the language code.
        """
        with self._lock:
            entry = self._get_entry_ref(record_id, entry_id).entry
            validate_entry_text(patch.text, entry_id)
            if patch.language_code is not None and patch.language_code != entry.language_code:
                raise ValidationError(
                    f"localized text <{entry_id}>: languageCode can not be changed "
                    f"from <{entry.language_code}> to <{patch.language_code}>.",
                    context={"entry_id": entry_id, "field": "languageCode"},
                )
            discard_immutable_audit(entry, patch, "localized text")

            previous = entry.copy()
            entry.text = patch.text.strip()
            entry.modified_at = self._clock()
            entry.modified_by = self._actor()

            # Restore in place; the entry index holds this very object
            def rollback():
                entry.text = previous.text
                entry.modified_at = previous.modified_at
                entry.modified_by = previous.modified_by

            self._save(rollback)
            result = entry.copy()
        logger.info(f"updateEntry({record_id}, {entry_id}) -> {_pretty(result)}")
        return result

    def delete_entry(self, record_id: str, entry_id: str) -> None:
        """
        Remove a localized text from its owning text and from the entry index.

        Raises:
            NotFoundError: As for read_entry.
            IntegrityFault: If the entry is missing from its owner's
                sequence.
        """
        with self._lock:
            ref = self._get_entry_ref(record_id, entry_id)
            owner = self._records.get(ref.record_id)
            position = owner.index_of(entry_id) if owner is not None else None
            if position is None:
                raise IntegrityFault(
                    f"localized text <{entry_id}> can not be removed, because it does not "
                    f"exist in text <{ref.record_id}>",
                    context={"text_id": ref.record_id, "entry_id": entry_id},
                )
            removed = owner.remove_entry(entry_id)
            del self._entries[entry_id]

            def rollback():
                owner.insert_entry(position, removed)
                self._entries[entry_id] = ref

            self._save(rollback)
        logger.info(f"deleteEntry({record_id}, {entry_id})")


def open_store(config: Config, actor_provider: Optional[Callable[[], str]] = None) -> TextStore:
    """
    Build a store backed by the JSON snapshot named in the configuration.

    The snapshot seeds the store even when persistence is switched off;
    in that case mutations stay in memory.
    """
    gateway = JsonSnapshotGateway(config.store.resolved_snapshot_path)
    if actor_provider is None:
        default_actor = config.store.default_actor

        def actor_provider() -> str:
            return default_actor

    logger.debug(f"Opening text store at {gateway.path} (persistent={config.store.persistent})")
    return TextStore(
        gateway=gateway,
        persistent=config.store.persistent,
        actor_provider=actor_provider,
        page_size=config.store.page_size,
    )
