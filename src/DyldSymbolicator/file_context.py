import os
import mmap

from typing import (
	Type,
	TypeVar,
	Union,
	BinaryIO
)

from DyldSymbolicator.errors import CacheIOError, MalformedCacheError
from DyldSymbolicator.structure import Structure


StructT = TypeVar("StructT", bound=Structure)
DataSource = Union[bytes, bytearray, mmap.mmap]


class FileContext:

	def __init__(self, file: DataSource) -> None:
		"""A read only view over a data source.

		Every accessor checks the requested range against the size of
		the data source and raises `MalformedCacheError` instead of
		reading past it.

		Args:
			file: The data, usually a read only mmap of the cache.
		"""

		self.file = file
		self.size = len(file)
		pass

	@classmethod
	def fromFile(cls, fileObject: BinaryIO) -> "FileContext":
		"""Map an open file read only and wrap it.

		Raises:
			CacheIOError: The file could not be inspected or mapped.
		"""

		try:
			fileSize = os.fstat(fileObject.fileno()).st_size
			if fileSize == 0:
				# mmap refuses empty files, let the header check reject it.
				return cls(b"")

			file = mmap.mmap(fileObject.fileno(), 0, access=mmap.ACCESS_READ)
		except (OSError, ValueError) as e:
			name = getattr(fileObject, "name", "cache file")
			raise CacheIOError(f"Unable to map {name}: {e}") from e

		try:
			return cls(file)
		except Exception:
			# subclasses validate in __init__
			file.close()
			raise

	def containsRange(self, offset: int, length: int) -> bool:
		"""Check if [offset, offset + length) lies within the data."""

		if offset < 0 or length < 0:
			return False

		return offset <= self.size and length <= self.size - offset

	def checkRange(self, offset: int, length: int, what: str = "data") -> None:
		"""Like containsRange but raises on failure.

		Raises:
			MalformedCacheError: The range is out of bounds.
		"""

		if not self.containsRange(offset, length):
			raise MalformedCacheError(
				f"{what} at {offset:#x} (size {length:#x}) is outside of the file ({self.size:#x} bytes)."  # noqa
			)
		pass

	def readString(self, offset: int, end: int = None) -> bytes:
		"""Read a null terminated c-string.

		Args:
			offset: the file offset to the start of the string.
			end: Optional; the string must terminate before this
				offset. Defaults to the end of the file.

		Returns:
			The string in bytes, without the null terminator.

		Raises:
			MalformedCacheError: The offset is out of bounds or
				the string is not terminated in time.
		"""

		if end is None or end > self.size:
			end = self.size

		if offset < 0 or offset >= end:
			raise MalformedCacheError(f"String offset {offset:#x} is out of bounds.")

		nullIndex = self.file.find(b"\x00", offset, end)
		if nullIndex == -1:
			raise MalformedCacheError(f"String at {offset:#x} is not null terminated.")

		return bytes(self.file[offset:nullIndex])

	def readStruct(self, structType: Type[StructT], offset: int) -> StructT:
		"""Read a structure at the offset.

		Raises:
			MalformedCacheError: The structure does not fit in the file.
		"""

		self.checkRange(offset, structType.sizeOf(), what=structType.__name__)
		return structType(self.file, offset)

	def getBytes(self, offset: int, length: int) -> bytes:
		"""Copy length bytes starting at offset.

		Raises:
			MalformedCacheError: The range is out of bounds.
		"""

		self.checkRange(offset, length)
		return bytes(self.file[offset:offset + length])

	def close(self) -> None:
		if isinstance(self.file, mmap.mmap):
			self.file.close()
		pass

	pass
