"""Error types raised by the communication engines."""

from datetime import datetime


class CommsError(Exception):
	"""Base class for comms-orchestrator errors."""
	pass


class NotFoundError(CommsError):
	"""Raised when a task, session or milestone id is unknown."""

	def __init__(self, kind: str, identifier: str):
		self.kind = kind
		self.identifier = identifier
		super().__init__(f"{kind} not found: {identifier}")


class ValidationError(CommsError):
	"""Raised for malformed input or an empty composed response."""
	pass


class SessionStateError(ValidationError):
	"""Raised when a collaboration session cannot make the requested transition."""
	pass


class TransientDegradation(CommsError):
	"""
	Records an engine failure that the orchestrator contained.

	Never raised to callers: the orchestrator builds one, logs it, keeps it
	in its degradation history and returns a fallback response instead.
	"""

	def __init__(self, operation: str, cause: BaseException):
		self.operation = operation
		self.cause = cause
		self.timestamp = datetime.now()
		super().__init__(f"{operation} degraded: {type(cause).__name__}: {cause}")

	def to_dict(self) -> dict:
		return {
			"operation": self.operation,
			"error_type": type(self.cause).__name__,
			"message": str(self.cause),
			"timestamp": self.timestamp.isoformat(),
		}
