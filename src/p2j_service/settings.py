import os
import tempfile
from dataclasses import dataclass

from . import __version__

ENGINES = ("pymupdf", "docling")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class ServiceConfig:
    """Service identity and runtime settings, built once at startup."""

    base_name: str = "PDFFORMServer"
    instance_id: int = 1
    version: str = __version__
    engine: str = "pymupdf"
    parse_timeout_sec: int = 300
    parse_workers: int = 4
    max_upload_mb: int = 300
    upload_dir: str = tempfile.gettempdir()
    document_root: str = "."

    def __post_init__(self) -> None:
        if self.parse_workers < 1:
            raise ValueError(f"PARSE_WORKERS must be at least 1, got {self.parse_workers}")
        if self.engine not in ENGINES:
            raise ValueError(f"unknown parse engine {self.engine!r}; expected one of {', '.join(ENGINES)}")

    @property
    def name(self) -> str:
        return f"{self.base_name}{self.instance_id}"

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        return cls(
            base_name=os.getenv("P2J_SERVICE_NAME", "PDFFORMServer"),
            instance_id=_env_int("P2J_INSTANCE_ID", 1),
            version=os.getenv("P2J_SERVICE_VERSION", __version__),
            engine=os.getenv("P2J_ENGINE", "pymupdf").strip().lower(),
            parse_timeout_sec=_env_int("PARSE_TIMEOUT_SEC", 300),
            parse_workers=_env_int("PARSE_WORKERS", 4),
            max_upload_mb=_env_int("MAX_UPLOAD_MB", 300),
            upload_dir=os.getenv("UPLOAD_DIR", tempfile.gettempdir()),
            document_root=os.getenv("DOCUMENT_ROOT", "."),
        )
