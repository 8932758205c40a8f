"""Rich views for milestone progress."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.tree import Tree

from ..models.progress import Milestone, MilestoneStatus, ProgressReport
from .utils import format_duration, format_relative_time, progress_bar, severity_style

STATUS_ICONS = {
	MilestoneStatus.PENDING: f"[dim]{escape('[ ]')}[/dim]",
	MilestoneStatus.IN_PROGRESS: f"[yellow]{escape('[~]')}[/yellow]",
	MilestoneStatus.COMPLETED: f"[green]{escape('[x]')}[/green]",
}
BLOCKED_ICON = f"[red]{escape('[!]')}[/red]"


def _milestone_label(milestone: Milestone) -> str:
	icon = BLOCKED_ICON if milestone.is_blocked else STATUS_ICONS[milestone.status]
	label = f"{icon} {escape(milestone.name)} [dim]{escape(progress_bar(milestone.progress, 10))} {milestone.progress:.0f}%[/dim]"
	if milestone.completed_at is not None:
		label += f" [dim]completed {format_relative_time(milestone.completed_at)}[/dim]"
	elif milestone.estimated_time:
		label += f" [dim]est. {format_duration(milestone.estimated_time)}[/dim]"
	return label


def render_progress_tree(report: ProgressReport, console: Optional[Console] = None) -> None:
	"""Render a progress report as a Rich Tree grouped by milestone state."""
	console = console or Console()
	summary = report.summary

	tree = Tree(
		f"[bold]{escape(report.task_id)}[/bold]  "
		f"[dim]({summary.milestones_completed}/{summary.milestones_total} milestones, "
		f"{summary.overall_progress:.0f}%)[/dim]"
	)

	groups = (
		("Completed", report.completed),
		("In Progress", report.in_progress),
		("Upcoming", report.pending),
	)
	for title, milestones in groups:
		if not milestones:
			continue
		branch = tree.add(f"[bold]{title}[/bold]")
		for milestone in milestones:
			node = branch.add(_milestone_label(milestone))
			for blocker in milestone.blockers:
				node.add(f"[red]blocked:[/red] {escape(blocker.description)}")
			if milestone.dependencies:
				node.add(f"[dim]depends on: {', '.join(milestone.dependencies)}[/dim]")

	console.print(tree)


def render_progress_summary(report: ProgressReport, console: Optional[Console] = None) -> None:
	"""Render a summary panel with forecasts, bottlenecks and recommendations."""
	console = console or Console()
	summary = report.summary

	lines = []
	lines.append(f"[bold]Progress:[/bold] {escape(progress_bar(summary.overall_progress))} {summary.overall_progress:.1f}%")
	lines.append(f"[bold]Milestones:[/bold] {summary.milestones_completed}/{summary.milestones_total} completed")
	if summary.current_focus:
		lines.append(f"[bold]Current focus:[/bold] {escape(summary.current_focus)}")
	if summary.estimated_time_remaining:
		lines.append(f"[bold]Remaining:[/bold] {format_duration(summary.estimated_time_remaining)}")

	if report.predictions:
		completion = report.predictions["completion"]
		lines.append(
			f"[bold]Forecast:[/bold] {format_duration(completion['estimated_time_remaining'])} "
			f"[dim]({completion['confidence']} confidence)[/dim]"
		)

	if report.detailed_analysis:
		bottlenecks = report.detailed_analysis.get("bottlenecks", [])
		if bottlenecks:
			lines.append("")
			lines.append("[bold]Bottlenecks:[/bold]")
			for b in bottlenecks:
				style = severity_style(b["severity"])
				lines.append(f"  [{style}]{b['severity']}[/{style}] {b['milestone']} ({b['type']})")

	if report.recommendations:
		lines.append("")
		lines.append("[bold]Recommendations:[/bold]")
		for r in report.recommendations:
			style = severity_style(r["priority"])
			lines.append(f"  [{style}]-[/{style}] {escape(r['description'])}")

	console.print(Panel("\n".join(lines), title=f"Progress: {report.task_id}", border_style="cyan"))
