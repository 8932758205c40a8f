"""Visualizer package - Rich terminal views for progress reports."""

from .progress_view import render_progress_summary, render_progress_tree

__all__ = [
	"render_progress_summary",
	"render_progress_tree",
]
