class InvalidImageError(ValueError):
	"""Raised when an upload cannot be decoded or has no usable pixels."""


class PersistenceError(RuntimeError):
	"""Raised when a reading could not be written to the store."""
