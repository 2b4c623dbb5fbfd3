"""Data source abstraction for notchdeck.

A DataSource produces one signal's value (system stats, weather,
reminders, ping, throughput). fetch() is plain blocking code: it reads
/proc, runs a subprocess or makes an HTTP request. The RefreshOrchestrator
decides when to call it and refresh() runs it on a worker thread, so the
decision loop never blocks on it.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from core.errors import ProviderFailure, ProviderTimeout

logger = logging.getLogger(__name__)


class DataSource(ABC):
    """Base class for all signal providers.

    Subclasses implement fetch(). Returning None means "nothing this
    cycle"; raising ProviderFailure gives a reason for the log.
    """

    def __init__(self, source_id: str, config: Dict):
        self.source_id = source_id
        self.config = config
        self.interval = config.get("interval", 5.0)  # seconds
        self.timeout = config.get("timeout", 10.0)

    async def refresh(self) -> Optional[Dict[str, Any]]:
        """Run fetch() on a worker thread, bounded by self.timeout."""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, self.fetch), self.timeout
            )
        except asyncio.TimeoutError:
            raise ProviderTimeout(self.source_id, self.timeout) from None
        except ProviderFailure:
            raise
        except Exception as exc:
            raise ProviderFailure(self.source_id, str(exc)) from exc

    @abstractmethod
    def fetch(self) -> Optional[Dict[str, Any]]:
        """Fetch data. Runs in a worker thread.

        Returns:
            Dict of field->value, or None to skip this cycle.
        """
        ...

    def close(self):
        """Release resources. Override if needed."""
