"""
Progress analysis - pure functions over a ProgressGraph.

Dependency chains, critical path, bottlenecks, efficiency, trends, risk
factors and completion forecasts. Nothing here mutates the graph.
"""

from datetime import datetime, timedelta
from typing import Optional

from ..models.progress import Milestone, ProgressGraph

LONG_RUNNING_FACTOR = 2.0
LONG_RUNNING_SEVERE_FACTOR = 3.0
OVERRUN_FACTOR = 1.5
DELAY_MARGIN = 0.2
CRITICAL_DEPENDENTS = 3
CRITICAL_DEPENDENTS_SEVERE = 5
LONG_CHAIN = 5
TREND_WINDOW = 3
HIGH_CONFIDENCE_SAMPLES = 3
NEXT_MILESTONE_LIMIT = 3


def _longest_chain(
	index: dict[str, Milestone],
	milestone_id: str,
	visiting: set[str],
	memo: dict[str, list[str]],
) -> list[str]:
	"""Longest dependency chain ending at milestone_id, earliest dependency first."""
	if milestone_id in memo:
		return memo[milestone_id]
	milestone = index.get(milestone_id)
	if milestone is None or milestone_id in visiting:
		return []
	visiting.add(milestone_id)
	best: list[str] = []
	for dep in milestone.dependencies:
		chain = _longest_chain(index, dep, visiting, memo)
		if len(chain) > len(best):
			best = chain
	visiting.discard(milestone_id)
	memo[milestone_id] = best + [milestone_id]
	return memo[milestone_id]


def find_dependency_chains(graph: ProgressGraph) -> list[list[str]]:
	"""
	Longest dependency chain ending at each milestone.

	Finished chains are memoised per milestone, so each milestone is walked
	once. The ids on the current path cut a cycle instead of looping. Only
	chains of two or more milestones are returned.
	"""
	index = {m.id: m for m in graph.milestones}
	memo: dict[str, list[str]] = {}
	chains = []
	for milestone in graph.milestones:
		chain = _longest_chain(index, milestone.id, set(), memo)
		if len(chain) > 1:
			chains.append(chain)
	return chains


def critical_path(graph: ProgressGraph) -> list[str]:
	"""The longest dependency chain in execution order, or [] when none."""
	chains = find_dependency_chains(graph)
	if not chains:
		return []
	return max(chains, key=len)


def has_dependency_cycle(graph: ProgressGraph) -> bool:
	index = {m.id: m for m in graph.milestones}
	state: dict[str, int] = {}  # 1 = on stack, 2 = done

	def visit(milestone_id: str) -> bool:
		state[milestone_id] = 1
		for dep in index[milestone_id].dependencies:
			if dep not in index:
				continue
			if state.get(dep) == 1:
				return True
			if dep not in state and visit(dep):
				return True
		state[milestone_id] = 2
		return False

	return any(m.id not in state and visit(m.id) for m in graph.milestones)


def dependent_counts(graph: ProgressGraph) -> dict[str, int]:
	counts = {m.id: 0 for m in graph.milestones}
	for milestone in graph.milestones:
		for dep in milestone.dependencies:
			if dep in counts:
				counts[dep] += 1
	return counts


def _overrunning(graph: ProgressGraph, factor: float, now: datetime) -> list[Milestone]:
	return [
		m for m in graph.in_progress
		if m.estimated_time > 0 and m.get_duration(now) > m.estimated_time * factor
	]


def identify_bottlenecks(graph: ProgressGraph, now: Optional[datetime] = None) -> list[dict]:
	now = now or datetime.now()
	bottlenecks = []

	for milestone in _overrunning(graph, LONG_RUNNING_FACTOR, now):
		duration = milestone.get_duration(now)
		severe = duration > milestone.estimated_time * LONG_RUNNING_SEVERE_FACTOR
		bottlenecks.append({
			"type": "long_running",
			"milestone_id": milestone.id,
			"milestone": milestone.name,
			"duration": duration,
			"estimated_time": milestone.estimated_time,
			"severity": "high" if severe else "medium",
		})

	counts = dependent_counts(graph)
	for milestone in graph.milestones:
		dependents = counts.get(milestone.id, 0)
		if dependents > CRITICAL_DEPENDENTS and not milestone.is_completed:
			bottlenecks.append({
				"type": "critical_path",
				"milestone_id": milestone.id,
				"milestone": milestone.name,
				"dependent_count": dependents,
				"severity": "high" if dependents > CRITICAL_DEPENDENTS_SEVERE else "medium",
			})

	return bottlenecks


def calculate_efficiency(graph: ProgressGraph) -> dict:
	"""Sum of estimates over sum of actual times for completed milestones, as a percentage."""
	completed = graph.completed
	if not completed:
		return {"score": 0, "details": "No completed milestones to analyze"}

	total_estimated = sum(m.estimated_time for m in completed)
	total_actual = sum(m.actual_time for m in completed)
	if total_estimated > 0 and total_actual > 0:
		score = round(total_estimated / total_actual * 100)
	else:
		score = 100

	if score > 100:
		details = "Ahead of schedule"
	elif score < 100:
		details = "Behind schedule"
	else:
		details = "On schedule"

	return {
		"score": score,
		"total_estimated": total_estimated,
		"total_actual": total_actual,
		"details": details,
	}


def analyze_trends(graph: ProgressGraph) -> dict:
	"""Compare the average actual time of the latest completions with earlier ones."""
	completed = sorted(graph.completed, key=lambda m: m.completed_at or m.last_updated)
	if len(completed) < 2:
		return {"trend": "insufficient_data", "improvement": 0.0}

	recent = completed[-TREND_WINDOW:]
	older = completed[:-TREND_WINDOW]
	recent_avg = sum(m.actual_time for m in recent) / len(recent)
	if not older:
		return {"trend": "stable", "improvement": 0.0, "recent_average": recent_avg}

	older_avg = sum(m.actual_time for m in older) / len(older)
	if recent_avg < older_avg:
		trend = "improving"
	elif recent_avg > older_avg:
		trend = "declining"
	else:
		trend = "stable"
	improvement = round((older_avg - recent_avg) / older_avg * 100, 1) if older_avg > 0 else 0.0

	return {
		"trend": trend,
		"improvement": improvement,
		"recent_average": recent_avg,
		"older_average": older_avg,
	}


def assess_risk_factors(graph: ProgressGraph, now: Optional[datetime] = None) -> list[dict]:
	now = now or datetime.now()
	risks = []

	blocked = graph.blocked
	if blocked:
		risks.append({
			"type": "blocked_milestones",
			"severity": "high" if len(blocked) > 2 else "medium",
			"count": len(blocked),
			"description": f"{len(blocked)} milestone(s) currently blocked",
		})

	overruns = _overrunning(graph, OVERRUN_FACTOR, now)
	if overruns:
		risks.append({
			"type": "timeline_overruns",
			"severity": "high" if len(overruns) > 1 else "medium",
			"count": len(overruns),
			"description": f"{len(overruns)} milestone(s) exceeding estimated time",
		})

	longest = critical_path(graph)
	if len(longest) > LONG_CHAIN:
		risks.append({
			"type": "dependency_concentration",
			"severity": "medium",
			"chain_length": len(longest),
			"description": "Long dependency chain increases schedule risk",
		})

	return risks


def predict_next_milestones(graph: ProgressGraph, limit: int = NEXT_MILESTONE_LIMIT) -> list[dict]:
	return [
		{"id": m.id, "name": m.name, "estimated_time": m.estimated_time}
		for m in graph.ready_milestones()[:limit]
	]


def predict_delays(graph: ProgressGraph, now: Optional[datetime] = None) -> list[dict]:
	"""In-progress milestones with less than 20% of their estimate left."""
	now = now or datetime.now()
	delays = []
	for milestone in graph.in_progress:
		if milestone.estimated_time <= 0:
			continue
		time_left = milestone.estimated_time - milestone.get_duration(now)
		if time_left < milestone.estimated_time * DELAY_MARGIN:
			delays.append({
				"milestone_id": milestone.id,
				"milestone": milestone.name,
				"progress": milestone.progress,
				"time_left": time_left,
				"risk": "high" if time_left < 0 else "medium",
			})
	return delays


def estimate_completion(graph: ProgressGraph, now: Optional[datetime] = None) -> dict:
	"""
	Forecast the remaining time for a task.

	Without completed samples the remaining estimates are summed as-is with
	low confidence. Otherwise they are scaled by the observed accuracy ratio
	(average actual over average estimate).
	"""
	now = now or datetime.now()
	remaining = sum(m.estimated_time for m in graph.milestones if not m.is_completed)
	completed = graph.completed

	if not completed:
		return {
			"estimated_time_remaining": remaining,
			"estimated_completion": (now + timedelta(seconds=remaining)).isoformat(),
			"confidence": "low",
			"based_on": "initial_estimates",
			"accuracy_ratio": 1.0,
			"completed_samples": 0,
		}

	avg_estimated = sum(m.estimated_time for m in completed) / len(completed)
	avg_actual = sum(m.actual_time for m in completed) / len(completed)
	ratio = avg_actual / avg_estimated if avg_estimated > 0 else 1.0
	adjusted = remaining * ratio

	return {
		"estimated_time_remaining": adjusted,
		"estimated_completion": (now + timedelta(seconds=adjusted)).isoformat(),
		"confidence": "high" if len(completed) >= HIGH_CONFIDENCE_SAMPLES else "medium",
		"based_on": "historical_performance",
		"accuracy_ratio": ratio,
		"completed_samples": len(completed),
	}


def build_recommendations(graph: ProgressGraph, now: Optional[datetime] = None) -> list[dict]:
	now = now or datetime.now()
	recommendations = []

	blocked = graph.blocked
	if blocked:
		recommendations.append({
			"type": "blocker_resolution",
			"priority": "high",
			"description": f"Resolve {len(blocked)} blocked milestone(s) to maintain progress",
			"action": "Review and address blocking conditions",
		})

	long_running = _overrunning(graph, OVERRUN_FACTOR, now)
	if long_running:
		recommendations.append({
			"type": "timeline_adjustment",
			"priority": "medium",
			"description": f"{len(long_running)} milestone(s) taking longer than estimated",
			"action": "Consider breaking down into smaller tasks or adjusting estimates",
		})

	if any(len(chain) > LONG_CHAIN for chain in find_dependency_chains(graph)):
		recommendations.append({
			"type": "dependency_optimization",
			"priority": "medium",
			"description": "Long dependency chains detected",
			"action": "Look for opportunities to parallelize work",
		})

	return recommendations
