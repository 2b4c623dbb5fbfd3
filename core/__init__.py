"""Core framework for the notchdeck hover panel.

Provides the pieces that decide when the panel shows, what it shows and
how often each signal is refreshed.

Architecture:
    EventBus               -- single-writer message bus, latest value per topic
    ActivationStateMachine -- pointer sampling, debounced collapse, deferred hide
    RefreshOrchestrator    -- per-signal cadence, in-flight dedupe, cancellation
    SourceArbiter          -- concurrent media providers, one prioritized answer
    DataSource             -- one signal's fetch, run on a worker with a timeout
    Registry               -- discovers and registers source and provider types
"""

from core.event_bus import EventBus
from core.data_source import DataSource
from core.provider import MediaProvider
from core.registry import (
    PROVIDER_REGISTRY,
    SOURCE_REGISTRY,
    register_provider,
    register_source,
)
from core.models import ActivationMode, MediaSnapshot, PanelState, SignalState, SignalUpdate

__all__ = [
    "EventBus",
    "DataSource",
    "MediaProvider",
    "SOURCE_REGISTRY",
    "PROVIDER_REGISTRY",
    "register_source",
    "register_provider",
    "ActivationMode",
    "MediaSnapshot",
    "PanelState",
    "SignalState",
    "SignalUpdate",
]
