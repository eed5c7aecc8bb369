"""
Index integrity checks for the text store.

Audits the primary index (record id -> MultiLangRecord) against the
secondary index (entry id -> owning record id and entry):
- Record keys match the ids of their models
- At most one entry per language code in every record
- Entry ids are unique across all records
- Every secondary index entry is present in its owner's sequence, and
  every entry of every sequence is present in the secondary index

This module is read-only; it never repairs anything.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from .models import LocalizedEntry, MultiLangRecord

logger = logging.getLogger(__name__)

# Maximum number of issues to report per category
MAX_ISSUES_PER_CATEGORY = 20

# UUID4 format regex (8-4-4-4-12 hexadecimal pattern)
UUID4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


class EntryRef(NamedTuple):
    """Secondary index value: the owning record id and the entry itself."""

    record_id: str
    entry: LocalizedEntry


class IssueSeverity(Enum):
    """Severity level of an integrity issue."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class IntegrityIssue:
    """
    A single integrity issue.

    Attributes:
        category: "record_key", "language", "entry_id" or "index"
        severity: Severity level
        message: Human-readable description
        entity_id: Id of the affected record or entry
        details: Additional details
    """

    category: str
    severity: IssueSeverity
    message: str
    entity_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "category": self.category,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.entity_id:
            result["entity_id"] = self.entity_id
        if self.details:
            result["details"] = self.details
        return result


@dataclass
class IntegrityReport:
    """Complete integrity check report."""

    issues: List[IntegrityIssue] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == IssueSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == IssueSeverity.WARNING)

    @property
    def is_healthy(self) -> bool:
        """True if no error-level issues."""
        return self.error_count == 0

    def add_issue(self, issue: IntegrityIssue) -> None:
        self.issues.append(issue)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.is_healthy,
            "summary": {
                "errors": self.error_count,
                "warnings": self.warning_count,
                "total": len(self.issues),
            },
            "stats": self.stats,
            "issues": [i.to_dict() for i in self.issues],
        }

    def format_text(self, verbose: bool = False) -> str:
        """Format report as human-readable text."""
        lines = []
        status = "OK" if self.is_healthy else "FAILED"
        lines.append(f"\nIndex Integrity Check: {status}")
        lines.append("=" * 40)
        lines.append(f"   Errors: {self.error_count} | Warnings: {self.warning_count}")
        lines.append("")

        if self.stats:
            lines.append("Statistics:")
            for key, value in self.stats.items():
                lines.append(f"   {key}: {value}")
            lines.append("")

        if not self.issues:
            lines.append("No issues found.")
            return "\n".join(lines)

        lines.append("Issues Found:")
        categories: Dict[str, List[IntegrityIssue]] = {}
        for issue in self.issues:
            categories.setdefault(issue.category, []).append(issue)

        for category, issues in categories.items():
            lines.append(f"\n   [{category.upper()}] ({len(issues)} issues)")
            for issue in issues[:10]:
                marker = "x" if issue.severity == IssueSeverity.ERROR else "!"
                lines.append(f"   {marker} {issue.message}")
                if verbose and issue.details:
                    for key, val in issue.details.items():
                        lines.append(f"      {key}: {val}")
            if len(issues) > 10:
                lines.append(f"   ... and {len(issues) - 10} more")

        return "\n".join(lines)


def is_valid_uuid4(id_str: str) -> bool:
    """Check if a string is a valid UUID4."""
    if not id_str:
        return False
    return bool(UUID4_PATTERN.match(id_str))


def check_record_keys(records: Mapping[str, MultiLangRecord], report: IntegrityReport) -> None:
    """Every primary index key must equal the id of its record."""
    mismatched = 0
    malformed = 0
    for key, record in records.items():
        if key != record.id:
            mismatched += 1
            if mismatched <= MAX_ISSUES_PER_CATEGORY:
                report.add_issue(IntegrityIssue(
                    category="record_key",
                    severity=IssueSeverity.ERROR,
                    message=f"Record stored under <{key}> has id <{record.id}>",
                    entity_id=key,
                ))
        if not is_valid_uuid4(record.id):
            malformed += 1
            if malformed <= MAX_ISSUES_PER_CATEGORY:
                report.add_issue(IntegrityIssue(
                    category="record_key",
                    severity=IssueSeverity.WARNING,
                    message=f"Record id <{record.id}> is not a uuid4",
                    entity_id=record.id,
                ))
    if mismatched:
        report.stats["mismatched_record_keys"] = mismatched


def check_languages(records: Mapping[str, MultiLangRecord], report: IntegrityReport) -> None:
    """At most one entry per language code within a record."""
    for record in records.values():
        seen: Dict[Any, str] = {}
        for entry in record:
            if entry.language_code in seen:
                report.add_issue(IntegrityIssue(
                    category="language",
                    severity=IssueSeverity.ERROR,
                    message=(
                        f"Record <{record.id}> has two entries in <{entry.language_code}>: "
                        f"<{seen[entry.language_code]}> and <{entry.id}>"
                    ),
                    entity_id=record.id,
                ))
            else:
                seen[entry.language_code] = entry.id


def check_entry_index(
    records: Mapping[str, MultiLangRecord],
    entries: Mapping[str, EntryRef],
    report: IntegrityReport,
) -> None:
    """The secondary index must be a bijection with the union of all sequences."""
    owners: Dict[str, str] = {}
    for record in records.values():
        for entry in record:
            if entry.id in owners:
                report.add_issue(IntegrityIssue(
                    category="entry_id",
                    severity=IssueSeverity.ERROR,
                    message=(
                        f"Entry id <{entry.id}> used by <{owners[entry.id]}> and <{record.id}>"
                    ),
                    entity_id=entry.id,
                ))
                continue
            owners[entry.id] = record.id

            ref = entries.get(entry.id)
            if ref is None:
                report.add_issue(IntegrityIssue(
                    category="index",
                    severity=IssueSeverity.ERROR,
                    message=f"Entry <{entry.id}> of record <{record.id}> is missing from the entry index",
                    entity_id=entry.id,
                ))
            elif ref.record_id != record.id or ref.entry is not entry:
                report.add_issue(IntegrityIssue(
                    category="index",
                    severity=IssueSeverity.ERROR,
                    message=f"Entry index points <{entry.id}> at the wrong record or object",
                    entity_id=entry.id,
                    details={"indexed_owner": ref.record_id, "actual_owner": record.id},
                ))

    for entry_id, ref in entries.items():
        if entry_id not in owners:
            report.add_issue(IntegrityIssue(
                category="index",
                severity=IssueSeverity.ERROR,
                message=f"Entry index holds <{entry_id}> which no record owns",
                entity_id=entry_id,
                details={"indexed_owner": ref.record_id},
            ))

    report.stats["indexed_entries"] = len(entries)
    report.stats["owned_entries"] = len(owners)


def run_integrity_check(
    records: Mapping[str, MultiLangRecord],
    entries: Mapping[str, EntryRef],
) -> IntegrityReport:
    """
    Run all checks against a pair of indices.

    The caller must hold whatever lock guards the indices.
    """
    report = IntegrityReport()
    report.stats["records"] = len(records)

    check_record_keys(records, report)
    check_languages(records, report)
    check_entry_index(records, entries, report)

    logger.info(
        f"Integrity check complete. Errors: {report.error_count}, "
        f"Warnings: {report.warning_count}"
    )
    return report
