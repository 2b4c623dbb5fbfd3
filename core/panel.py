"""Panel controller interface.

The controller owns the actual window. The activation state machine only
ever calls these four methods; it never touches layout or widgets.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Tuple

from core.models import ActivationMode

logger = logging.getLogger(__name__)


class PanelController(ABC):
    """Receives show/hide/mode/resize commands from the state machine."""

    @abstractmethod
    def show(self):
        ...

    @abstractmethod
    def hide(self):
        ...

    @abstractmethod
    def set_mode(self, mode: ActivationMode, animated: bool = True):
        ...

    @abstractmethod
    def resize(self, size: Tuple[int, int], animated: bool = True):
        ...


class LoggingPanelController(PanelController):
    """Headless controller: logs and records every command it receives."""

    def __init__(self):
        self.calls: List[Tuple] = []

    def show(self):
        logger.info("panel: show")
        self.calls.append(("show",))

    def hide(self):
        logger.info("panel: hide")
        self.calls.append(("hide",))

    def set_mode(self, mode: ActivationMode, animated: bool = True):
        logger.info("panel: mode -> %s", mode.value)
        self.calls.append(("set_mode", mode, animated))

    def resize(self, size: Tuple[int, int], animated: bool = True):
        logger.debug("panel: resize -> %dx%d", size[0], size[1])
        self.calls.append(("resize", size, animated))

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)
