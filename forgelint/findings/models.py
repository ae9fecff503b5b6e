# Pydantic data models for findings: Finding, Location, Message, Fix, Suggestion, Report.

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class Severity(str, Enum):
    OFF = "off"
    WARN = "warn"
    ERROR = "error"


class FixStatus(str, Enum):
    """What happened to a Finding's Fix during reconciliation."""

    NONE = "none"
    PENDING = "pending"
    APPLIED = "applied"
    CONFLICT = "conflict"


class Location(BaseModel):
    """Where in the source a finding was reported (file, byte range, line, column)."""

    path: Path
    start_byte: int = Field(..., ge=0)
    end_byte: int = Field(..., ge=0)
    line: int = Field(..., ge=1, description="1-based line number")
    column: int = Field(..., ge=1, description="1-based column number")
    end_line: Optional[int] = Field(None, ge=1)
    end_column: Optional[int] = Field(None, ge=1)
    snippet: Optional[str] = None

    model_config = {"arbitrary_types_allowed": True, "frozen": True}


class Message(BaseModel):
    """Structured diagnostic text, renderable as plain text or JSON."""

    kind: str = Field(..., description="message id, e.g. unhandledPromise")
    category: str = Field(..., description="e.g. security, error-handling, style, engine")
    text: str
    reference: Optional[str] = Field(None, description="e.g. CWE-89")
    hint: Optional[str] = None

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.text} ({self.reference})" if self.reference else self.text


class TextEdit(BaseModel):
    """Replace source bytes [start_byte, end_byte) with replacement."""

    start_byte: int = Field(..., ge=0)
    end_byte: int = Field(..., ge=0)
    replacement: str = ""

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _ordered(self) -> "TextEdit":
        if self.end_byte < self.start_byte:
            raise ValueError(f"edit ends before it starts: {self.start_byte}:{self.end_byte}")
        return self

    @property
    def is_insertion(self) -> bool:
        return self.start_byte == self.end_byte

    def conflicts_with(self, other: "TextEdit") -> bool:
        """Overlapping ranges, or an insertion touching the other edit's bounds."""
        if self.is_insertion or other.is_insertion:
            return (
                other.start_byte <= self.start_byte <= other.end_byte
                or self.start_byte <= other.start_byte <= self.end_byte
            )
        return self.start_byte < other.end_byte and other.start_byte < self.end_byte


class Fix(BaseModel):
    """Edits applied together and claimed safe by the emitting rule."""

    edits: tuple[TextEdit, ...] = Field(..., min_length=1)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _no_internal_overlap(self) -> "Fix":
        ordered = sorted(self.edits, key=lambda e: (e.start_byte, e.end_byte))
        for prev, cur in zip(ordered, ordered[1:]):
            if prev.conflicts_with(cur):
                raise ValueError(
                    f"overlapping edits in one fix: {prev.start_byte}:{prev.end_byte} "
                    f"and {cur.start_byte}:{cur.end_byte}"
                )
        return self

    @property
    def start_byte(self) -> int:
        return min(e.start_byte for e in self.edits)


class Suggestion(BaseModel):
    """A proposed edit that needs human confirmation; never applied automatically."""

    label: str
    fix: Fix

    model_config = {"frozen": True}


class Finding(BaseModel):
    """A single issue reported by a rule (e.g. SQL injection at line 42)."""

    rule_id: str
    message: Message
    location: Location
    severity: Severity = Severity.WARN
    fix: Optional[Fix] = None
    suggestions: tuple[Suggestion, ...] = ()
    fix_status: FixStatus = FixStatus.NONE

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @model_validator(mode="after")
    def _fix_status_matches(self) -> "Finding":
        if self.fix is None and self.fix_status is not FixStatus.NONE:
            raise ValueError("fix_status set on a finding without a fix")
        return self

    def sort_key(self) -> tuple[int, str]:
        return self.location.start_byte, self.rule_id


class Report(BaseModel):
    """Result of one analysis of one file."""

    path: Path
    findings: list[Finding] = Field(default_factory=list)
    output: Optional[str] = Field(None, description="rewritten source when fixes were requested")
    fixes_applied: int = 0
    passes: int = 1

    model_config = {"arbitrary_types_allowed": True}

    @property
    def error_count(self) -> int:
        return sum(1 for f in self.findings if f.severity is Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for f in self.findings if f.severity is Severity.WARN)
