"""
Task result model - the opaque record of what a task execution produced.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(str, Enum):
	"""Outcome of a task execution."""
	PENDING = "pending"
	COMPLETED = "completed"
	FAILED = "failed"


class TaskOutput(BaseModel):
	"""A named output value produced by a task."""
	value: Any = Field(default=None)
	description: str = Field(default="")
	timestamp: datetime = Field(default_factory=datetime.now)


class TaskChange(BaseModel):
	"""A change recorded while executing a task (file edit, config change...)."""
	model_config = ConfigDict(extra="allow")

	type: str = Field(default="modification", description="Kind of change (file, configuration, ...)")
	description: str = Field(default="")
	file: Optional[str] = Field(default=None)
	timestamp: datetime = Field(default_factory=datetime.now)


class ValidationOutcome(BaseModel):
	"""Result of a validation run against the task output."""
	name: str = Field(default="")
	success: bool = Field(default=True)
	message: str = Field(default="")
	timestamp: datetime = Field(default_factory=datetime.now)


class TaskIssue(BaseModel):
	"""An error or warning raised during execution."""
	message: str
	context: str = Field(default="")
	timestamp: datetime = Field(default_factory=datetime.now)


class TaskResult(BaseModel):
	"""
	Everything a finished (or failed) task hands to the communication layer.

	Collections are append-only: use the add_* helpers rather than mutating
	the lists directly.
	"""
	id: str = Field(description="Task identifier")
	title: str = Field(default="Untitled task")
	status: TaskStatus = Field(default=TaskStatus.COMPLETED)
	outputs: dict[str, TaskOutput] = Field(default_factory=dict)
	changes: list[TaskChange] = Field(default_factory=list)
	validation_results: list[ValidationOutcome] = Field(default_factory=list)
	errors: list[TaskIssue] = Field(default_factory=list)
	warnings: list[TaskIssue] = Field(default_factory=list)
	metadata: dict[str, Any] = Field(default_factory=dict)
	completed_at: datetime = Field(default_factory=datetime.now)
	duration: float = Field(default=0.0, description="Execution time in seconds")

	def add_output(self, key: str, value: Any, description: str = "") -> None:
		self.outputs[key] = TaskOutput(value=value, description=description)

	def add_change(self, change: Union[TaskChange, dict, str]) -> None:
		if isinstance(change, str):
			change = TaskChange(description=change)
		elif isinstance(change, dict):
			change = TaskChange(**change)
		self.changes.append(change)

	def add_validation_result(self, name: str, success: bool, message: str = "") -> None:
		self.validation_results.append(ValidationOutcome(name=name, success=success, message=message))

	def add_error(self, error: Union[BaseException, str], context: str = "") -> None:
		self.errors.append(TaskIssue(message=str(error), context=context))

	def add_warning(self, warning: str, context: str = "") -> None:
		self.warnings.append(TaskIssue(message=warning, context=context))

	def is_successful(self) -> bool:
		return self.status == TaskStatus.COMPLETED and not self.errors

	def has_warnings(self) -> bool:
		return bool(self.warnings)

	def get_output_value(self, key: str, default: Any = None) -> Any:
		output = self.outputs.get(key)
		return output.value if output is not None else default

	@property
	def task_type(self) -> str:
		return self.metadata.get("type", "general")
