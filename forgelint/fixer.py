# Fix reconciliation: merge the fixes of one pass into non-overlapping edits and apply them.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from forgelint.findings.models import Finding, FixStatus, TextEdit

logger = logging.getLogger(__name__)


@dataclass
class FixPlan:
    """Outcome of reconciliation: updated findings plus the accepted edits."""

    findings: list[Finding]
    edits: list[TextEdit] = field(default_factory=list)
    applied: int = 0
    conflicts: int = 0


def plan_fixes(findings: Sequence[Finding]) -> FixPlan:
    """
    Choose which fixes to apply.

    Fixes are visited by the start offset of their first edit (ties keep the
    findings' order). A fix is accepted only if none of its edits conflicts
    with an edit already accepted; otherwise the whole fix is dropped and its
    finding marked FixStatus.CONFLICT. Suggestions are never considered.
    """
    candidates = sorted(
        (i for i, f in enumerate(findings) if f.fix is not None),
        key=lambda i: (findings[i].fix.start_byte, i),  # type: ignore[union-attr]
    )
    accepted: list[TextEdit] = []
    status: dict[int, FixStatus] = {}
    for i in candidates:
        fix = findings[i].fix
        assert fix is not None
        if any(edit.conflicts_with(other) for edit in fix.edits for other in accepted):
            status[i] = FixStatus.CONFLICT
            logger.warning(
                "Fix for %s at byte %d conflicts with an earlier fix; not applied",
                findings[i].rule_id,
                fix.start_byte,
            )
            continue
        accepted.extend(fix.edits)
        status[i] = FixStatus.APPLIED

    updated = [
        f.model_copy(update={"fix_status": status[i]}) if i in status else f
        for i, f in enumerate(findings)
    ]
    accepted.sort(key=lambda e: (e.start_byte, e.end_byte))
    applied = sum(1 for s in status.values() if s is FixStatus.APPLIED)
    return FixPlan(
        findings=updated,
        edits=accepted,
        applied=applied,
        conflicts=len(status) - applied,
    )


def apply_edits(source: bytes, edits: Sequence[TextEdit]) -> bytes:
    """
    Apply non-overlapping edits computed against the original offsets.

    Edits are applied back-to-front so earlier offsets stay valid.
    """
    out = bytearray(source)
    for edit in sorted(edits, key=lambda e: (e.start_byte, e.end_byte), reverse=True):
        if edit.end_byte > len(source):
            raise ValueError(f"edit {edit.start_byte}:{edit.end_byte} exceeds source length {len(source)}")
        out[edit.start_byte : edit.end_byte] = edit.replacement.encode("utf-8")
    return bytes(out)
