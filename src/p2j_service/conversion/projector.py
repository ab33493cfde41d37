"""
Narrow the parse engine's output tree to the public response shape.

The engine tree is treated as read-only: every projection is built from
fresh objects and nothing is written back into the input.
"""

from typing import Any, Mapping, Sequence
from urllib.parse import unquote

from .models import FieldProjection, PageProjection, TextProjection


def project(engine_output: Mapping[str, Any]) -> tuple[PageProjection, ...]:
    pages: Sequence[Mapping[str, Any]] = engine_output.get("Pages") or ()
    return tuple(project_page(page) for page in pages)


def project_page(page: Mapping[str, Any]) -> PageProjection:
    return PageProjection(
        width=page.get("Width"),
        height=page.get("Height"),
        texts=tuple(project_text(t) for t in page.get("Texts") or ()),
        fields=tuple(project_field(f) for f in page.get("Fields") or ()),
    )


def project_text(entry: Mapping[str, Any]) -> TextProjection:
    return TextProjection(
        x=entry.get("x"),
        y=entry.get("y"),
        w=entry.get("w"),
        text=_join_runs(entry.get("R")),
    )


def project_field(entry: Mapping[str, Any]) -> FieldProjection:
    ident = entry.get("id")
    field_id = ident.get("Id") if isinstance(ident, Mapping) else None
    return FieldProjection(
        id=field_id,
        x=entry.get("x"),
        y=entry.get("y"),
        w=entry.get("w"),
        value=entry.get("V"),
    )


def _join_runs(runs: Sequence[Mapping[str, Any]] | None) -> str | None:
    # no runs means no text at all, not an empty string
    if not runs:
        return None
    return " ".join(unquote(str(run.get("T", ""))).strip() for run in runs)
