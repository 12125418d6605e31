from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from apidraft.validation.validators import ValidatorTable


@dataclass(frozen=True)
class Snapshot:
    document: dict[str, Any]
    validators: ValidatorTable = field(default_factory=dict)


class DocumentState:
    """
    Process-wide holder for the latest generated document.

    The snapshot is only ever replaced wholesale by publish(), so a reader
    sees either the previous complete snapshot or the new one.
    """

    def __init__(self) -> None:
        self._snapshot: Optional[Snapshot] = None
        self.requested = False
        self.pending = False
        self.last_error: Optional[BaseException] = None

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    def publish(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.last_error = None

    def mark_started(self) -> None:
        self.requested = True
        self.pending = True

    def mark_finished(self, error: Optional[BaseException] = None) -> None:
        self.pending = False
        if error is not None:
            self.last_error = error
