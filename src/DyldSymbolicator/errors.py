class SymbolicatorError(Exception):
	"""Base class for errors raised while reading a cache."""
	pass


class MalformedCacheError(SymbolicatorError):
	"""The cache contains a value that cannot be trusted.

	Raised for a bad magic, an offset or count that leaves the
	file, an unterminated string, or an unsupported table version.
	"""
	pass


class UnsupportedCacheError(SymbolicatorError):
	"""The cache predates the accelerator info and cannot be searched."""
	pass


class CacheIOError(SymbolicatorError):
	"""The cache file could not be opened or mapped."""
	pass
