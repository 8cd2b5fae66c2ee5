"""Default configuration values for Interlude."""

# Paths
DATA_DIR: str = "data"

# Apps whose foreground use is tracked as sessions
MONITORED_APPS: list[str] = [
    "com.instagram.android",
    "com.zhiliaoapp.musically",
    "com.google.android.youtube",
]

# Session tracking
SESSION_GAP_SECONDS: float = 30.0
MIN_RECORDED_SESSION_SECONDS: float = 5.0
SUSTAINED_USE_THRESHOLD_MINUTES: float = 10.0

# Adaptive polling (seconds)
POLL_INTERVAL_ACTIVE: float = 1.5
POLL_INTERVAL_IDLE: float = 5.0
POLL_INTERVAL_SCREEN_OFF: float = 30.0
POLL_INTERVAL_POWER_SAVE: float = 10.0
IDLE_AFTER_SECONDS: float = 60.0

# Base rate limits
MIN_SESSION_FOR_INTERVENTION_SECONDS: float = 120.0
GLOBAL_COOLDOWN_MINUTES: float = 5.0
TYPE_COOLDOWN_MINUTES: dict[str, float] = {
    "reminder": 10.0,
    "sustained_use": 15.0,
}
MAX_INTERVENTIONS_PER_HOUR: int = 4
MAX_INTERVENTIONS_PER_DAY: int = 20

# Adaptive cooldowns
PERSONA_BASE_COOLDOWN_MINUTES: float = 5.0
OPPORTUNITY_SKIP_COOLDOWN_MINUTES: float = 5.0
MAX_COMBINED_COOLDOWN_MULTIPLIER: float = 6.0

# Local hour windows as (start, end), end exclusive, may wrap midnight
DAYTIME_HOURS: tuple[int, int] = (6, 23)
NIGHT_HOURS: tuple[int, int] = (23, 6)

# Behavioral cues
RAPID_SWITCH_WINDOW_SECONDS: float = 30.0
RAPID_SWITCH_MIN_APPS: int = 3
COMPULSIVE_WINDOW_MINUTES: float = 5.0
COMPULSIVE_MIN_REOPENS: int = 3
QUICK_REOPEN_SECONDS: float = 120.0
LONG_SCREEN_ON_MINUTES: float = 45.0
EXCESSIVE_UNLOCKS_PER_HOUR: int = 15

# Persona
NEW_USER_DAYS: int = 14
PERSONA_CACHE_HOURS: float = 6.0

# Burden
BURDEN_WINDOW_DAYS: int = 30
BURDEN_CACHE_MINUTES: float = 10.0
BURDEN_MIN_SAMPLES: int = 10

# Performance
CONTEXT_BUDGET_MS: int = 100

# Decision log
DECISION_LOG_QUEUE_SIZE: int = 1000
DECISION_RETENTION_DAYS: int = 90

LOG_LEVEL: str = "INFO"

# All configurable keys (for validation)
CONFIG_KEYS = {
    "DATA_DIR",
    "MONITORED_APPS",
    "SESSION_GAP_SECONDS",
    "MIN_RECORDED_SESSION_SECONDS",
    "SUSTAINED_USE_THRESHOLD_MINUTES",
    "POLL_INTERVAL_ACTIVE",
    "POLL_INTERVAL_IDLE",
    "POLL_INTERVAL_SCREEN_OFF",
    "POLL_INTERVAL_POWER_SAVE",
    "IDLE_AFTER_SECONDS",
    "MIN_SESSION_FOR_INTERVENTION_SECONDS",
    "GLOBAL_COOLDOWN_MINUTES",
    "TYPE_COOLDOWN_MINUTES",
    "MAX_INTERVENTIONS_PER_HOUR",
    "MAX_INTERVENTIONS_PER_DAY",
    "PERSONA_BASE_COOLDOWN_MINUTES",
    "OPPORTUNITY_SKIP_COOLDOWN_MINUTES",
    "MAX_COMBINED_COOLDOWN_MULTIPLIER",
    "DAYTIME_HOURS",
    "NIGHT_HOURS",
    "RAPID_SWITCH_WINDOW_SECONDS",
    "RAPID_SWITCH_MIN_APPS",
    "COMPULSIVE_WINDOW_MINUTES",
    "COMPULSIVE_MIN_REOPENS",
    "QUICK_REOPEN_SECONDS",
    "LONG_SCREEN_ON_MINUTES",
    "EXCESSIVE_UNLOCKS_PER_HOUR",
    "NEW_USER_DAYS",
    "PERSONA_CACHE_HOURS",
    "BURDEN_WINDOW_DAYS",
    "BURDEN_CACHE_MINUTES",
    "BURDEN_MIN_SAMPLES",
    "CONTEXT_BUDGET_MS",
    "DECISION_LOG_QUEUE_SIZE",
    "DECISION_RETENTION_DAYS",
    "LOG_LEVEL",
}
