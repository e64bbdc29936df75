"""
Auto-save core.

Tracks at most one pending save per tab, reconciles it against tab
lifecycle events, and runs the save pipeline with guaranteed cleanup.
"""

from tabkeeper.autosave.collaborators import Collaborators
from tabkeeper.autosave.coordinator import AutoSaveCoordinator
from tabkeeper.autosave.dispatcher import RequestDispatcher
from tabkeeper.autosave.errors import (
    AutoSaveError,
    FetchError,
    InvalidSessionError,
    UnknownMethodError,
)
from tabkeeper.autosave.models import (
    ClosedMarker,
    ExternalMessage,
    InitResponse,
    PageData,
    Rule,
    SaveIntent,
    SaveMessage,
    Sender,
    Session,
    SkipResult,
)
from tabkeeper.autosave.orchestrator import SaveOrchestrator
from tabkeeper.autosave.policy import EligibilityPolicy
from tabkeeper.autosave.reconciler import LifecycleReconciler, transition
from tabkeeper.autosave.registry import Direct, PendingRegistry, Redirected

__all__ = [
    "AutoSaveCoordinator",
    "AutoSaveError",
    "ClosedMarker",
    "Collaborators",
    "Direct",
    "EligibilityPolicy",
    "ExternalMessage",
    "FetchError",
    "InitResponse",
    "InvalidSessionError",
    "LifecycleReconciler",
    "PageData",
    "PendingRegistry",
    "Redirected",
    "RequestDispatcher",
    "Rule",
    "SaveIntent",
    "SaveMessage",
    "SaveOrchestrator",
    "Sender",
    "Session",
    "SkipResult",
    "UnknownMethodError",
    "transition",
]
