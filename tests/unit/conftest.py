import time
from pathlib import Path
from typing import Any, Callable

import pytest

from p2j_service.conversion import ParseFailed, ParseOutcome, ParseReady


class RecordingResponder:
    def __init__(self) -> None:
        self.sent: list[tuple[int, Any]] = []

    def send(self, status_code: int, body: Any) -> None:
        self.sent.append((status_code, body))


class FakeSession:
    def __init__(self, owner: object, outcome: Callable[[str], ParseOutcome], delay: float) -> None:
        self.owner = owner
        self._outcome = outcome
        self._delay = delay
        self.loaded: list[str] = []
        self.closed = False

    def load(self, file_path: str) -> ParseOutcome:
        self.loaded.append(file_path)
        if self._delay:
            time.sleep(self._delay)
        return self._outcome(file_path)

    def close(self) -> None:
        self.closed = True


class FakeEngine:
    name = "fake"

    def __init__(
        self,
        outcome: ParseOutcome | Callable[[str], ParseOutcome] | None = None,
        *,
        fail_open: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        if outcome is None:
            outcome = ParseReady(data=sample_tree())
        self._outcome = outcome if callable(outcome) else (lambda _path: outcome)
        self._fail_open = fail_open
        self._delay = delay
        self.sessions: list[FakeSession] = []

    def open_session(self, owner: object) -> FakeSession:
        if self._fail_open is not None:
            raise self._fail_open
        session = FakeSession(owner, self._outcome, self._delay)
        self.sessions.append(session)
        return session


def sample_tree() -> dict[str, Any]:
    return {
        "Pages": [
            {
                "Width": 38.25,
                "Height": 49.5,
                "HLines": [{"x": 1, "y": 2, "w": 3, "l": 4}],
                "Texts": [
                    {
                        "x": 2.1,
                        "y": 3.4,
                        "w": 10.2,
                        "clr": 0,
                        "R": [{"T": "Form%201040EZ", "S": -1, "TS": [0, 15, 1, 0]}, {"T": "%20(2011)%20", "S": -1}],
                    },
                    {"x": 5, "y": 6, "w": 1},
                ],
                "Fields": [
                    {"id": {"Id": "f1", "EN": 0}, "x": 7, "y": 8, "w": 9, "h": 1, "V": "Alice", "T": {"Name": "alpha"}},
                    {"x": 1, "y": 1, "w": 1, "V": True},
                ],
            },
            {"Width": 38.25, "Height": 49.5, "Texts": [], "Fields": []},
        ],
        "Meta": {"PDFFormatVersion": "1.7", "IsAcroFormPresent": True},
    }


def engine_error(message: str = "Invalid PDF structure") -> ParseFailed:
    return ParseFailed(data={"parserError": message})


@pytest.fixture
def staged_pdf(tmp_path: Path) -> Path:
    path = tmp_path / "upload_abc.pdf"
    path.write_bytes(b"%PDF-1.4\n%fake\n")
    return path
