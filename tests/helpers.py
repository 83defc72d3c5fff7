"""Test doubles shared by the test modules."""

from pathlib import Path

AUDIO = b"ID3\x04\x00fake-audio-payload" * 4


class ScriptedDownloader:
    """
    Stands in for the HTTP downloader. Each URL plays back its list of
    outcomes in order (bytes are written to the destination, exceptions are
    raised); once a script runs out the default outcome is used.
    """

    def __init__(self, scripts=None, default=AUDIO):
        self.scripts = {url: list(steps) for url, steps in (scripts or {}).items()}
        self.default = default
        self.calls: list[str] = []

    async def download_file(self, url: str, destination_path: str) -> int:
        self.calls.append(url)
        steps = self.scripts.get(url)
        outcome = steps.pop(0) if steps else self.default
        if isinstance(outcome, Exception):
            raise outcome
        Path(destination_path).write_bytes(outcome)
        return len(outcome)


class RecordingNotifier:
    def __init__(self):
        self.messages: list[str] = []

    @property
    def enabled(self) -> bool:
        return True

    async def send(self, message: str) -> bool:
        self.messages.append(message)
        return True
