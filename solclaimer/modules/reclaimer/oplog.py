"""Running, human-readable log of one reclamation operation."""

from typing import List

from solclaimer.shared.system.logging import Logger


class OperationLog:
    """
    Chronological event lines for the caller, mirrored to Logger.

    Usage:
        log = OperationLog("SUBMIT")
        log.info("Building close batches…")
        log.failure("Send error on batch 2: blockhash expired")
    """

    def __init__(self, source: str = "ENGINE"):
        self.source = source
        self.lines: List[str] = []

    def _emit(self, line: str, level) -> None:
        self.lines.append(line)
        level(f"[{self.source}] {line}")

    def info(self, line: str) -> None:
        self._emit(line, Logger.info)

    def success(self, line: str) -> None:
        self._emit(f"✅ {line}", Logger.success)

    def failure(self, line: str) -> None:
        self._emit(f"⛔ {line}", Logger.error)

    def warning(self, line: str) -> None:
        self._emit(f"⚠️ {line}", Logger.warning)

    def text(self) -> str:
        return "\n".join(self.lines)
