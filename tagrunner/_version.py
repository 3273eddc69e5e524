"""Centralized version constant for tagrunner."""

# Note: TAGRUNNER_GIT_COMMIT should be populated at build time so wheels/sdists
# carry the commit even when git metadata is unavailable at runtime.
TAGRUNNER_VERSION = "0.4.0"
TAGRUNNER_GIT_COMMIT = "unknown"

__all__ = ["TAGRUNNER_VERSION", "TAGRUNNER_GIT_COMMIT"]
