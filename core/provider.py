"""Media provider interface.

Every "now playing" source (a native player, a browser tab, the generic
session fallback) implements query(). The arbiter only ever calls
attempt(), which turns whatever happened into a ProviderResult so no
source needs special handling.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from core.errors import ProviderFailure
from core.models import MediaSnapshot, ProviderResult

logger = logging.getLogger(__name__)


class MediaProvider(ABC):
    """One external "what's playing" source."""

    def __init__(self, name: str, config: Optional[Dict] = None):
        config = config or {}
        self.name = name
        self.config = config
        self.timeout = config.get("timeout", 2.0)

    async def attempt(self, timeout: Optional[float] = None) -> ProviderResult:
        """Query the source on a worker thread within a time budget.

        Never raises except for cancellation of the calling task.
        """
        budget = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        try:
            snapshot = await asyncio.wait_for(
                loop.run_in_executor(None, self.query), budget
            )
        except asyncio.TimeoutError:
            logger.debug("Provider %s timed out after %.2fs", self.name, budget)
            return ProviderResult.timed_out()
        except ProviderFailure as exc:
            logger.debug("Provider %s failed: %s", self.name, exc.reason)
            return ProviderResult.failed(exc.reason)
        except Exception as exc:
            logger.warning("Provider %s error: %s", self.name, exc)
            return ProviderResult.failed(str(exc))

        if snapshot is None:
            return ProviderResult.empty()
        return ProviderResult.success(snapshot)

    @abstractmethod
    def query(self) -> Optional[MediaSnapshot]:
        """Blocking lookup. Return None when the source has nothing loaded."""
        ...

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name}>"
