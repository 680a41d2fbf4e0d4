"""Nomad event stream consumption."""

from .watcher import EventWatcher, rejection_reason

__all__ = ["EventWatcher", "rejection_reason"]
