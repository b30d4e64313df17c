import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)

BEGIN_PATTERN = re.compile(r"^begin", re.IGNORECASE)
COMMIT_PATTERN = re.compile(r"^commit", re.IGNORECASE)
ROLLBACK_PATTERN = re.compile(r"^rollback", re.IGNORECASE)

STATEMENT_TERMINATOR = ";"


class TransactionState(Enum):
    IDLE = "idle"
    BUFFERING = "buffering"


class BufferAction(Enum):
    EXECUTE = "execute"  # submit `script` now
    SWALLOW = "swallow"  # held back until COMMIT, nothing to submit
    DISCARD = "discard"  # the open transaction was rolled back client-side


@dataclass(frozen=True)
class BufferDecision:
    action: BufferAction
    script: Optional[str] = None

    @property
    def is_flush(self) -> bool:
        return self.action == BufferAction.EXECUTE and self.script is not None


class TransactionBuffer:
    """
    Client-side emulation of BEGIN ... COMMIT.

    BigQuery only honours a multi-statement transaction inside a single script. Once a
    ``BEGIN`` is seen, statements are held back instead of being sent, and the whole
    transaction is released as one newline-joined script when ``COMMIT`` arrives.
    No result data is returned while the transaction is open.

    Not safe for concurrent use: the owning connection serialises access.
    """

    def __init__(self):
        self.state = TransactionState.IDLE
        self._statements: List[str] = []

    @property
    def is_buffering(self) -> bool:
        return self.state == TransactionState.BUFFERING

    @property
    def statements(self) -> List[str]:
        return list(self._statements)

    def feed(self, sql: str) -> BufferDecision:
        """Decide what to do with ``sql``.

        Returns EXECUTE with ``script=None`` when the statement should be sent on its
        own, EXECUTE with a script when a COMMIT flushed the buffer, SWALLOW when the
        statement was queued and DISCARD when a ROLLBACK dropped the queue.
        """
        if self.state == TransactionState.IDLE:
            if not BEGIN_PATTERN.match(sql):
                return BufferDecision(BufferAction.EXECUTE)

            logger.warning(
                "Transaction detected. This is only supported on BigQuery in a script or session. "
                "Commencing buffering to run the whole transaction at once as a script upon commit. "
                "Note that no result data is returned while the transaction is open."
            )
            self.state = TransactionState.BUFFERING
            self._statements = [sql]
            return BufferDecision(BufferAction.SWALLOW)

        if ROLLBACK_PATTERN.match(sql):
            logger.warning(
                "Rolling back buffered transaction; discarding %d statement(s) without running them",
                len(self._statements),
            )
            self.reset()
            return BufferDecision(BufferAction.DISCARD)

        self._statements.append(sql)
        if not COMMIT_PATTERN.match(sql):
            return BufferDecision(BufferAction.SWALLOW)

        logger.warning(
            "Commit detected; running %d buffered statement(s) as one script",
            len(self._statements),
        )
        script = "\n".join(_terminate(statement) for statement in self._statements)
        self.reset()
        return BufferDecision(BufferAction.EXECUTE, script)

    def reset(self) -> None:
        self.state = TransactionState.IDLE
        self._statements = []


def _terminate(statement: str) -> str:
    statement = statement.rstrip()
    if statement.endswith(STATEMENT_TERMINATOR):
        return statement
    return statement + STATEMENT_TERMINATOR
