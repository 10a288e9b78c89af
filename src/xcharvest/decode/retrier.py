"""Bounded retry of external decoder runs through transient corruption."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from pydantic import ValidationError

from xcharvest.core.clock import Clock, SystemClock
from xcharvest.core.config import DecoderConfig
from xcharvest.core.errors import (
    FatalDecodeError,
    ToolNotInstalledError,
    TransientCorruptionError,
)
from xcharvest.core.log import logger
from xcharvest.core.result import CommandResult

T = TypeVar("T")


class DecodeRetrier:
    """Runs a decoder and a parse step, retrying transient failures.

    A decoder that reads an artifact the IDE is still flushing fails
    with messages like "corrupted" or "incomplete"; those are retried
    with growing delays. A missing tool or an unknown non-zero exit is
    fatal at once.
    """

    def __init__(
        self,
        config: DecoderConfig | None = None,
        clock: Clock | None = None,
    ):
        self.config = config or DecoderConfig()
        self.clock = clock or SystemClock()

    def is_transient(self, diagnostics: str) -> bool:
        """True if diagnostics mention any transient marker."""
        text = diagnostics.lower()
        return any(
            marker.lower() in text for marker in self.config.transient_markers
        )

    def delay_for(self, retry: int) -> float:
        """Delay before retry number retry (0-based); last value repeats."""
        delays = self.config.retry_delays
        if not delays:
            return 0.0
        return delays[min(retry, len(delays) - 1)]

    def classify(self, run: CommandResult, parse: Callable[[CommandResult], T]) -> T:
        """Parse one run or raise a classified error.

        Raises:
            TransientCorruptionError: Retryable failure
            FatalDecodeError: Non-transient non-zero exit
        """
        if run.timed_out:
            raise TransientCorruptionError(
                "decoder timed out", diagnostics=run.diagnostics
            )

        if not run.success:
            if self.is_transient(run.stderr) or self.is_transient(run.stdout):
                raise TransientCorruptionError(
                    f"decoder reported a partial read (exit {run.exit_code})",
                    diagnostics=run.diagnostics,
                )
            raise FatalDecodeError(
                f"decoder exited with status {run.exit_code}",
                reason="unexpected_exit",
                diagnostics=run.diagnostics,
            )

        try:
            return parse(run)
        except (ValueError, ValidationError) as e:
            raise TransientCorruptionError(
                f"parsing failed: {e}", diagnostics=run.stdout[:2000]
            ) from e

    async def run(
        self,
        attempt: Callable[[], CommandResult],
        parse: Callable[[CommandResult], T],
        what: str = "artifact",
        guidance: list[str] | None = None,
    ) -> T:
        """Run attempt/parse until success or the retry budget is spent.

        Args:
            attempt: Invokes the decoder once
            parse: Turns a successful run into a value
            what: Human-readable name of the artifact, for messages
            guidance: Install hints used when the tool is missing

        Raises:
            FatalDecodeError: Tool missing, unexpected exit, or retries
                exhausted
        """
        total = self.config.max_retries + 1
        history: list[str] = []

        for number in range(1, total + 1):
            try:
                run = attempt()
            except ToolNotInstalledError as e:
                logger.error("Decoder not installed", tool=e.tool, what=what)
                raise FatalDecodeError(
                    f"{e} (needed to decode {what})",
                    reason="tool_not_installed",
                    attempts=number,
                    diagnostics=e.detail,
                    guidance=guidance,
                ) from e

            try:
                value = self.classify(run, parse)
            except TransientCorruptionError as e:
                history.append(f"attempt {number}: {e.message}\n{e.diagnostics}")
                if number == total:
                    break
                delay = self.delay_for(number - 1)
                logger.warning(
                    "Transient decode failure, retrying",
                    what=what,
                    attempt=number,
                    of=total,
                    delay=delay,
                    error=e.message,
                )
                await self.clock.sleep(delay)
                continue
            except FatalDecodeError as e:
                e.attempts = number
                logger.error(
                    "Decoder failed", what=what, attempt=number, error=e.message
                )
                raise

            if number > 1:
                logger.info("Decoded after retries", what=what, attempts=number)
            return value

        logger.error("Decode retries exhausted", what=what, attempts=total)
        raise FatalDecodeError(
            f"Could not decode {what} after {total} attempts; "
            "it may still be written or be corrupt",
            reason="retries_exhausted",
            attempts=total,
            diagnostics="\n\n".join(history),
            guidance=[
                "Wait for the IDE to finish writing and try again",
                "Rebuild to produce a fresh artifact",
            ],
        )


__all__ = ["DecodeRetrier"]
