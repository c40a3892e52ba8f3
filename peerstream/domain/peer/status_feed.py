"""Human-readable status history shown next to the player."""

from collections import deque

from loguru import logger


class StatusFeed:
    """Bounded, human-readable history of what the client has been doing."""

    def __init__(self, max_lines: int = 200):
        self._lines: deque[str] = deque(maxlen=max_lines)

    def add(self, line: str) -> None:
        self._lines.append(line)
        logger.info("[status] {}", line)

    def reset(self, line: str) -> None:
        self._lines.clear()
        self.add(line)

    def lines(self) -> list[str]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __str__(self) -> str:
        return "\n".join(self._lines)


__all__ = ["StatusFeed"]
