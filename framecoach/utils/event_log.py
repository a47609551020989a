from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional


class EventLog:
    """Append-only log of timestamped, levelled lines.

    Writing never raises: a camera loop must keep running if the log file is
    unavailable. Pass ``path=None`` to keep lines in memory only.
    """

    def __init__(self, path: Optional[Path] = None, echo: bool = False, keep: int = 500) -> None:
        self.path = Path(path) if path is not None else None
        self.echo = echo
        self._keep = max(0, int(keep))
        self._recent: list[str] = []

    @staticmethod
    def default() -> "EventLog":
        root = Path(__file__).resolve().parent.parent.parent / "sessions"
        return EventLog(path=root / "logs" / "framecoach.log")

    def log(self, level: str, message: str, component: str | None = None) -> None:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        prefix = f"component={component} " if component else ""
        line = f"{timestamp} [{level}] {prefix}{message}"
        if self._keep:
            self._recent.append(line)
            if len(self._recent) > self._keep:
                del self._recent[: len(self._recent) - self._keep]
        if self.echo:
            print(f"[framecoach] {prefix}{message}")
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception:
            return

    def info(self, message: str, component: str | None = None) -> None:
        self.log("INFO", message, component)

    def warning(self, message: str, component: str | None = None) -> None:
        self.log("WARNING", message, component)

    def error(self, message: str, component: str | None = None) -> None:
        self.log("ERROR", message, component)

    def recent(self, max_lines: int = 120) -> list[str]:
        if max_lines <= 0:
            return list(self._recent)
        return self._recent[-max_lines:]

    def read_recent(self, max_lines: int = 120) -> str:
        if self.path is None or not self.path.exists():
            return "No logs available."
        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except Exception as exc:
            return f"Unable to read logs: {exc}"
        tail = lines[-max_lines:] if max_lines > 0 else lines
        return "\n".join(tail)


class NullLog(EventLog):
    def __init__(self) -> None:
        super().__init__(path=None, echo=False, keep=0)

    def log(self, level: str, message: str, component: str | None = None) -> None:
        return
