"""Per-user cache, state and config locations."""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path

import platformdirs

from .errors import DirectoryError

_APP = "intar"

_ADJECTIVES = (
    "able", "brave", "calm", "clever", "cosmic", "crisp", "daring", "eager",
    "fancy", "gentle", "glad", "golden", "happy", "humble", "jolly", "keen",
    "kind", "lively", "lucky", "merry", "mighty", "noble", "polite", "proud",
    "quick", "quiet", "rapid", "sharp", "shiny", "steady", "sunny", "swift",
    "tidy", "vivid", "warm", "wise", "witty", "zesty",
)

_NOUNS = (
    "badger", "beaver", "bison", "cat", "cobra", "crane", "dingo", "dolphin",
    "eagle", "falcon", "ferret", "gecko", "heron", "ibis", "jackal", "koala",
    "lemur", "lynx", "marmot", "moose", "newt", "otter", "owl", "panda",
    "puffin", "quail", "raven", "salmon", "seal", "sloth", "tapir", "tiger",
    "toucan", "turtle", "walrus", "wombat", "yak", "zebra",
)


def _require(path: Path | str | None, kind: str) -> Path:
    if not path:
        raise DirectoryError(f"{kind} directory not found")
    return Path(path) / _APP


@dataclass(frozen=True)
class IntarDirs:
    """The cache, state and config directories used by intar."""

    cache: Path
    state: Path
    config: Path

    @classmethod
    def locate(cls) -> IntarDirs:
        """Find the platform's standard directories for intar."""
        return cls(
            cache=_require(platformdirs.user_cache_dir(), "cache"),
            state=_require(platformdirs.user_state_dir(), "state"),
            config=_require(platformdirs.user_config_dir(), "config"),
        )

    def images_dir(self) -> Path:
        return self.cache / "images"

    def runs_dir(self) -> Path:
        return self.state / "runs"

    def new_run_dir(self) -> Path:
        """A fresh, randomly named directory path under runs_dir()."""
        return self.runs_dir() / generate_run_name()

    def ensure_dirs(self) -> None:
        """Create the image, run and config directories if missing."""
        for directory in (self.images_dir(), self.runs_dir(), self.config):
            directory.mkdir(parents=True, exist_ok=True)


def generate_run_name() -> str:
    """Return a name such as 'brave-otter-4821'."""
    suffix = random.randint(1000, 9998)
    return f"{random.choice(_ADJECTIVES)}-{random.choice(_NOUNS)}-{suffix}"