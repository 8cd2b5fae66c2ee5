"""
Interlude Configuration

Copy this file to config.py and adjust values.
Any key left out keeps its default from interlude/config/defaults.py.
"""

# =============================================================================
# Storage
# =============================================================================

DATA_DIR = "data"  # decisions.db and preferences.db live here

# =============================================================================
# Monitored apps
# =============================================================================

MONITORED_APPS = [
    "com.instagram.android",
    "com.zhiliaoapp.musically",
    "com.google.android.youtube",
]

# =============================================================================
# Session tracking
# =============================================================================

SESSION_GAP_SECONDS = 30.0              # Grace window before a session times out
MIN_RECORDED_SESSION_SECONDS = 5.0      # Shorter sessions are not persisted
SUSTAINED_USE_THRESHOLD_MINUTES = 10.0  # Base threshold, scaled by the cooldown multiplier

# =============================================================================
# Adaptive polling (seconds)
# =============================================================================

POLL_INTERVAL_ACTIVE = 1.5
POLL_INTERVAL_IDLE = 5.0
POLL_INTERVAL_SCREEN_OFF = 30.0
POLL_INTERVAL_POWER_SAVE = 10.0
IDLE_AFTER_SECONDS = 60.0  # No monitored app for this long -> idle polling

# =============================================================================
# Rate limits
# =============================================================================

MIN_SESSION_FOR_INTERVENTION_SECONDS = 120.0
GLOBAL_COOLDOWN_MINUTES = 5.0
TYPE_COOLDOWN_MINUTES = {
    "reminder": 10.0,
    "sustained_use": 15.0,
}
MAX_INTERVENTIONS_PER_HOUR = 4
MAX_INTERVENTIONS_PER_DAY = 20

PERSONA_BASE_COOLDOWN_MINUTES = 5.0
OPPORTUNITY_SKIP_COOLDOWN_MINUTES = 5.0
MAX_COMBINED_COOLDOWN_MULTIPLIER = 6.0  # Ceiling on persona x feedback x burden

# Local hour windows (start, end), end exclusive, may wrap midnight
DAYTIME_HOURS = (6, 23)
NIGHT_HOURS = (23, 6)

# =============================================================================
# Behavioral cues
# =============================================================================

RAPID_SWITCH_WINDOW_SECONDS = 30.0
RAPID_SWITCH_MIN_APPS = 3
COMPULSIVE_WINDOW_MINUTES = 5.0
COMPULSIVE_MIN_REOPENS = 3
QUICK_REOPEN_SECONDS = 120.0
LONG_SCREEN_ON_MINUTES = 45.0
EXCESSIVE_UNLOCKS_PER_HOUR = 15

# =============================================================================
# Persona and burden
# =============================================================================

NEW_USER_DAYS = 14
PERSONA_CACHE_HOURS = 6.0

BURDEN_WINDOW_DAYS = 30
BURDEN_CACHE_MINUTES = 10.0
BURDEN_MIN_SAMPLES = 10

# =============================================================================
# Performance and logging
# =============================================================================

CONTEXT_BUDGET_MS = 100
DECISION_LOG_QUEUE_SIZE = 1000
DECISION_RETENTION_DAYS = 90

LOG_LEVEL = "INFO"
