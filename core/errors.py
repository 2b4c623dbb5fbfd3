"""Error taxonomy for the panel core.

Provider-level errors are absorbed at the arbiter/orchestrator boundary
and degrade to "no value this cycle". None of these are fatal.
"""

from typing import Optional


class PanelError(Exception):
    """Base class for all notchdeck errors."""


class ProviderFailure(PanelError):
    """A provider could not produce a value (unavailable, denied, parse error)."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}" if reason else source)


class ProviderTimeout(ProviderFailure):
    """A provider exceeded its time budget."""

    def __init__(self, source: str, timeout: Optional[float] = None):
        self.timeout = timeout
        reason = f"timed out after {timeout:.2f}s" if timeout else "timed out"
        super().__init__(source, reason)


class NoTargetDisplay(PanelError):
    """No display hosting the activation zone is currently attached."""


class SignalDisabled(PanelError):
    """A refresh was requested for a signal that is switched off."""

    def __init__(self, signal: str):
        self.signal = signal
        super().__init__(f"signal '{signal}' is disabled")
