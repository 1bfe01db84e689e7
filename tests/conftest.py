import asyncio
import pathlib
import sys
from typing import Callable, List

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from uncloud.services.narration.backends import SpeechBackend  # noqa: E402
from uncloud.services.narration.cancellation import CancellationSource  # noqa: E402
from uncloud.services.narration.models import SpeechOptions  # noqa: E402


class FakeBackend(SpeechBackend):
    """
    Speech backend that writes start/stop/end events to a shared log.

    ``block=True`` keeps each utterance "playing" until its token is
    cancelled; otherwise an utterance lasts ``duration`` seconds. Texts in
    ``fail_on`` raise instead of speaking; ``fail_all`` fails everything.
    """

    def __init__(
        self,
        name: str,
        log: List[str],
        *,
        duration: float = 0.0,
        block: bool = False,
        fail_on=(),
        fail_all: bool = False,
    ):
        self.name = name
        self.log = log
        self.duration = duration
        self.block = block
        self.fail_on = set(fail_on)
        self.fail_all = fail_all
        self.spoken: List[str] = []
        self.started: List[str] = []
        self.options: List[SpeechOptions] = []
        self.cancel_all_calls = 0

    async def speak(self, text: str, options: SpeechOptions, token: CancellationSource) -> None:
        token.raise_if_cancelled()
        if self.fail_all or text in self.fail_on:
            self.log.append(f"fail:{self.name}:{text}")
            raise RuntimeError(f"{self.name} cannot speak {text!r}")

        self.started.append(text)
        self.options.append(options)
        self.log.append(f"start:{self.name}:{text}")
        remove = token.add_callback(lambda: self.log.append(f"stop:{self.name}:{text}"))
        try:
            if self.block:
                await token.wait()
                token.raise_if_cancelled()
            else:
                await token.sleep(self.duration)
        finally:
            remove()
        self.spoken.append(text)
        self.log.append(f"end:{self.name}:{text}")

    def cancel_all(self) -> None:
        self.cancel_all_calls += 1


@pytest.fixture
def event_log() -> List[str]:
    return []


@pytest.fixture
def make_backend(event_log):
    def _make(name: str = "primary", **kwargs) -> FakeBackend:
        return FakeBackend(name, event_log, **kwargs)

    return _make


@pytest.fixture
def wait_until():
    """Poll ``predicate`` on the running loop until it holds or time runs out."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not reached in time")
            await asyncio.sleep(0.005)

    return _wait
