import json
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from mixmate.application.merging import build_merge_key


logger = logging.getLogger(__name__)


@dataclass
class PlatformMapping:
    """A song's resolved identifier on one platform."""

    platform: str
    platform_id: str
    confidence: float
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> Dict[str, Any]:
        """Serialize mapping to JSON."""
        return {
            "platform": self.platform,
            "platform_id": self.platform_id,
            "confidence": self.confidence,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PlatformMapping":
        """Deserialize mapping from JSON."""
        return cls(
            platform=data["platform"],
            platform_id=data["platform_id"],
            confidence=float(data["confidence"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


class MappingCache:
    """In-memory store of songs already resolved on a platform.

    Lets repeated exports of the same song skip the target search.
    """

    def __init__(self):
        self._mappings: Dict[str, Dict[str, PlatformMapping]] = {}
        self._lock = threading.Lock()

    def get(self, song: Any, platform: str) -> Optional[PlatformMapping]:
        with self._lock:
            return self._mappings.get(build_merge_key(song), {}).get(platform)

    def put(self, song: Any, platform: str, platform_id: str, confidence: float) -> PlatformMapping:
        mapping = PlatformMapping(platform=platform, platform_id=platform_id, confidence=confidence)
        with self._lock:
            self._mappings.setdefault(build_merge_key(song), {})[platform] = mapping
        self._on_change()
        return mapping

    def __len__(self) -> int:
        with self._lock:
            return sum(len(by_platform) for by_platform in self._mappings.values())

    def to_json(self) -> Dict[str, Any]:
        with self._lock:
            return {
                key: {platform: m.to_json() for platform, m in by_platform.items()}
                for key, by_platform in self._mappings.items()
            }

    def load_json(self, data: Dict[str, Any]) -> None:
        with self._lock:
            self._mappings = {
                key: {platform: PlatformMapping.from_json(m) for platform, m in by_platform.items()}
                for key, by_platform in data.items()
            }

    def _on_change(self) -> None:
        pass


class FileMappingCache(MappingCache):
    """Mapping cache persisted to a JSON file after every change."""

    def __init__(self, path: str):
        """Initialize and load existing mappings from ``path`` if present."""
        super().__init__()
        self.path = path
        if os.path.exists(path):
            try:
                with open(path, "r") as f:
                    self.load_json(json.load(f))
                logger.debug(f"Loaded {len(self)} platform mappings from {path}")
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"Ignoring unreadable mapping cache {path}: {e}")

    def _on_change(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w") as f:
            json.dump(self.to_json(), f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)
