"""Planning metrics and study statistics."""

from .collector import collect_metrics, compute_study_stats

__all__ = ["collect_metrics", "compute_study_stats"]
