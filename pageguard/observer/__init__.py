"""Per-document observer: mutation watching, dedup/throttle and alert emission."""

from .alerts import AlertEmitter
from .guard import AlertDedup, AnalysisThrottle, ObserverGuard
from .observer import PageAnalysis, PageObserver
from .watcher import DebounceTimer, MutationWatcher, adds_form

__all__ = [
    "AlertEmitter",
    "AlertDedup",
    "AnalysisThrottle",
    "ObserverGuard",
    "PageAnalysis",
    "PageObserver",
    "DebounceTimer",
    "MutationWatcher",
    "adds_form",
]
