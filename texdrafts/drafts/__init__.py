"""Draft naming and retention."""

from .naming import artifact_name, parse_artifact_name, publish_artifact
from .retention import RetentionResult, list_artifacts, reconcile

__all__ = [
    "RetentionResult",
    "artifact_name",
    "list_artifacts",
    "parse_artifact_name",
    "publish_artifact",
    "reconcile",
]
