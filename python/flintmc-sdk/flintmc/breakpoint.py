"""Interactive breakpoints answered through in-game chat.

When a test pauses, the controller announces itself in chat and waits
for an operator to type ``s`` (step one tick, then pause again) or ``c``
(continue to the next breakpoint). The wait has no time limit; a cancel
token lets a surrounding run abort it.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum

from flintmc.config import TimingConfig
from flintmc.errors import RunCancelled
from flintmc.session import ChatChannel, GameSession

logger = logging.getLogger(__name__)

PROMPT_MARKER = "Waiting for step/continue"
PROMPT_TEXT = f"{PROMPT_MARKER} (s = step, c = continue)"

STEP_TOKENS = ("s", "step")
CONTINUE_TOKENS = ("c", "continue")


class BreakpointState(Enum):
    """Where a breakpoint wait currently stands."""
    PROMPTING = "prompting"
    WAITING = "waiting"
    STEPPED = "stepped"
    CONTINUED = "continued"


def _ends_with_token(text: str, tokens: tuple[str, ...]) -> bool:
    return any(text == t or text.endswith(f" {t}") for t in tokens)


def parse_command(message: str) -> BreakpointState | None:
    """Map a chat message to STEPPED, CONTINUED, or None if unrelated.

    The message is trimmed and case-folded, then matched as a whole or by
    its last word so that ``<Steve> s`` is understood.
    """
    text = message.strip().casefold()
    if _ends_with_token(text, STEP_TOKENS):
        return BreakpointState.STEPPED
    if _ends_with_token(text, CONTINUE_TOKENS):
        return BreakpointState.CONTINUED
    return None


class BreakpointController:
    """Pause/resume protocol multiplexed over the chat channel.

    Usage::

        bp = BreakpointController(session, chat)
        if bp.wait("tick 3") is BreakpointState.STEPPED:
            ...
    """

    def __init__(
        self,
        session: GameSession,
        chat: ChatChannel,
        config: TimingConfig | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self._session = session
        self._chat = chat
        self.config = config or TimingConfig()
        self._cancel = cancel
        self.state: BreakpointState | None = None

    def wait(self, reason: str) -> BreakpointState:
        """Block until the operator answers; return STEPPED or CONTINUED.

        Raises:
            RunCancelled: If the cancel token is set while waiting.
        """
        with self._chat.owned_by("breakpoint"):
            self.state = BreakpointState.PROMPTING
            logger.info("Breakpoint: %s", reason)
            self._session.send_command(f"say {PROMPT_TEXT}")
            self._chat.drain(self.config.chat_drain_timeout_ms / 1000.0)

            self.state = BreakpointState.WAITING
            poll_timeout = self.config.chat_poll_timeout_ms / 1000.0
            while True:
                if self._cancel is not None and self._cancel.is_set():
                    msg = f"Breakpoint wait cancelled ({reason})"
                    raise RunCancelled(msg)
                received = self._chat.receive(poll_timeout)
                if received is None or PROMPT_MARKER in received.text:
                    continue
                answer = parse_command(received.text)
                if answer is None:
                    continue
                self.state = answer
                logger.info("Breakpoint answered by %s: %s", received.sender, answer.value)
                return answer
