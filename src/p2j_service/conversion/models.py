from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TextProjection:
    x: float | None
    y: float | None
    w: float | None
    text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"x": self.x, "y": self.y, "w": self.w}
        if self.text is not None:
            out["text"] = self.text
        return out


@dataclass(frozen=True)
class FieldProjection:
    id: str | None
    x: float | None
    y: float | None
    w: float | None
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.id is not None:
            out["id"] = self.id
        out.update({"x": self.x, "y": self.y, "w": self.w, "value": self.value})
        return out


@dataclass(frozen=True)
class PageProjection:
    width: float | None
    height: float | None
    texts: tuple[TextProjection, ...] = ()
    fields: tuple[FieldProjection, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "Width": self.width,
            "Height": self.height,
            "Texts": [t.to_dict() for t in self.texts],
            "Fields": [f.to_dict() for f in self.fields],
        }


@dataclass(frozen=True)
class ResponseEnvelope:
    """Public JSON result returned for every request.

    ``pages`` is only set on a successful parse; an envelope without it
    serializes without the ``Pages``/``Meta`` keys. Likewise
    ``data`` and ``description`` are dropped when unset so that an error
    envelope is just ``{"statusCode", "message"}``.
    """

    status_code: int
    message: str
    data: Any = None
    description: str | None = None
    pages: tuple[PageProjection, ...] | None = None
    meta: Any = None

    @classmethod
    def parsed(cls, source: str, pages: tuple[PageProjection, ...], meta: Any) -> "ResponseEnvelope":
        return cls(200, "OK", source, "FormImage JSON", pages=pages, meta=meta)

    @classmethod
    def failed(cls, message: str) -> "ResponseEnvelope":
        return cls(500, message)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"statusCode": self.status_code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        if self.description is not None:
            out["description"] = self.description
        if self.pages is not None:
            out["Pages"] = [p.to_dict() for p in self.pages]
            if self.meta is not None:
                out["Meta"] = self.meta
        return out
