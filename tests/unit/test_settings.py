import pytest

from p2j_service import __version__
from p2j_service.settings import ServiceConfig


def test_defaults() -> None:
    config = ServiceConfig()

    assert config.name == "PDFFORMServer1"
    assert config.version == __version__
    assert config.engine == "pymupdf"


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("P2J_SERVICE_NAME", "FormSvc")
    monkeypatch.setenv("P2J_INSTANCE_ID", "4")
    monkeypatch.setenv("P2J_SERVICE_VERSION", "2.0.0")
    monkeypatch.setenv("P2J_ENGINE", "Docling")
    monkeypatch.setenv("PARSE_TIMEOUT_SEC", "0")
    monkeypatch.setenv("DOCUMENT_ROOT", "/srv/forms")

    config = ServiceConfig.from_env()

    assert config.name == "FormSvc4"
    assert config.version == "2.0.0"
    assert config.engine == "docling"
    assert config.parse_timeout_sec == 0
    assert config.document_root == "/srv/forms"


def test_config_is_immutable() -> None:
    config = ServiceConfig()

    with pytest.raises(AttributeError):
        config.version = "x"  # type: ignore[misc]


@pytest.mark.parametrize("name,value", [("MAX_UPLOAD_MB", "lots"), ("PARSE_TIMEOUT_SEC", "-1"), ("P2J_ENGINE", "pdf2json"), ("PARSE_WORKERS", "0")])
def test_invalid_env_fails_fast(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        ServiceConfig.from_env()
