# Machine-readable output: reports serialized through pydantic.

from typing import Sequence

from pydantic import TypeAdapter

from forgelint.findings.models import Report

_REPORTS = TypeAdapter(list[Report])


def render_json(reports: Sequence[Report], include_output: bool = False) -> str:
    """
    Serialize reports as a JSON array, one object per file.

    The rewritten source is left out unless include_output is set, since
    --fix already writes it back to disk.
    """
    exclude = None if include_output else {"__all__": {"output"}}
    return _REPORTS.dump_json(list(reports), indent=2, exclude=exclude).decode("utf-8")
