"""
Signal tracking.

Provides:
- SessionTracker: foreground signals -> session lifecycle events
- BehavioralCueTracker: short history of switches/unlocks/reopens -> flags
"""

from interlude.tracking.cues import BehavioralCueTracker
from interlude.tracking.session_tracker import SessionTracker

__all__ = ["BehavioralCueTracker", "SessionTracker"]
