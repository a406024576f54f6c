import ctypes
from typing import Any


class Structure(ctypes.LittleEndianStructure):
	"""
		A base class for all structures.

		Instances are always copies of the underlying data, the
	cache is never modified through them.
	"""

	_fileOff_: int

	def __new__(cls, dataSource: bytes = None, offset: int = 0) -> Any:
		if dataSource is not None:
			instance = cls.from_buffer_copy(dataSource, offset)
			instance._fileOff_ = offset
			return instance
		else:
			return super().__new__(cls)

	def __init__(self, dataSource: bytes = None, offset: int = 0) -> None:
		pass

	def __len__(self) -> int:
		return ctypes.sizeof(self)

	@classmethod
	def sizeOf(cls) -> int:
		return ctypes.sizeof(cls)
