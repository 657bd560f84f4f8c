"""Constants for the rotation module.

This module centralizes the selection weights and health-check values used
across the rotation package.
"""

# Selection probabilities, checked top to bottom. The weights are not
# normalized: with several fresh accounts the cumulative sum passes 1.0 and
# later candidates can never be drawn.
EXPIRED_PROBABILITY = 0.10
FRESHEST_PROBABILITY = 0.85
FRESHNESS_PROBABILITIES: tuple[tuple[float, float], ...] = (
    (30.0, 0.70),
    (20.0, 0.50),
    (10.0, 0.30),
    (5.0, 0.10),
)
STALE_PROBABILITY = 0.05

# Health check
HEALTH_CHECK_MAX_TOKENS = 5
HEALTH_CHECK_PROMPT = "hi"
HEALTH_CHECK_CONCURRENCY = 4
