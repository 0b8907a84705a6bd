"""Post-treatment progress monitoring"""

from lifeline_core.core.monitoring.progress_monitor import ProgressMonitor

__all__ = ["ProgressMonitor"]
