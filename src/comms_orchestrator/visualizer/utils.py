"""Shared utilities for visualizer views and text templates."""

from datetime import datetime
from typing import Optional


def format_duration(seconds: float) -> str:
	"""Format a duration for display. e.g. '1.2s', '45ms', '2m 3s', '1h 5m'."""
	if seconds < 0.001:
		return "<1ms"
	if seconds < 1.0:
		return f"{seconds * 1000:.0f}ms"
	if seconds < 60.0:
		return f"{seconds:.1f}s"
	if seconds < 3600.0:
		minutes = int(seconds // 60)
		secs = seconds % 60
		return f"{minutes}m {secs:.0f}s"
	hours = int(seconds // 3600)
	minutes = int(seconds % 3600 // 60)
	return f"{hours}h {minutes}m"


def format_relative_time(moment: Optional[datetime], now: Optional[datetime] = None) -> str:
	"""Format a timestamp as relative time (e.g. '2m ago') or absolute."""
	if moment is None:
		return "-"
	total_secs = int(((now or datetime.now()) - moment).total_seconds())
	if total_secs < 0:
		return moment.isoformat()[:19]
	if total_secs < 60:
		return f"{total_secs}s ago"
	if total_secs < 3600:
		return f"{total_secs // 60}m ago"
	if total_secs < 86400:
		return f"{total_secs // 3600}h ago"
	return f"{total_secs // 86400}d ago"


def progress_bar(percent: float, width: int = 20) -> str:
	"""Plain-text progress bar, e.g. '[#####---------------]'."""
	percent = max(0.0, min(100.0, percent))
	filled = int(round(width * percent / 100))
	return "[" + "#" * filled + "-" * (width - filled) + "]"


def severity_style(severity: str) -> str:
	"""Return a Rich style string for a severity level."""
	return {"high": "red", "medium": "yellow"}.get(severity, "dim")
