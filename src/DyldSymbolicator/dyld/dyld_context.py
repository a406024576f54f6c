from typing import (
	List,
	Optional,
)

from DyldSymbolicator.errors import MalformedCacheError
from DyldSymbolicator.file_context import FileContext, DataSource
from DyldSymbolicator.dyld.dyld_structs import (
	DYLD_CACHE_MAGIC_PREFIX,
	dyld_cache_header,
	dyld_cache_mapping_info,
	dyld_cache_image_info,
)


class DyldContext(FileContext):

	header: dyld_cache_header
	mappings: List[dyld_cache_mapping_info]
	images: List[dyld_cache_image_info]

	def __init__(self, file: DataSource) -> None:
		"""A wrapper around a dyld file.

		Validates the header, the mapping table and the image table.
		Nothing is returned unless all of them are within the file.

		Args:
			file: The data of the cache, usually a read only mmap.

		Raises:
			MalformedCacheError: The header or one of the tables is
				invalid.
		"""

		super().__init__(file)

		if self.size < dyld_cache_header.SIZE:
			raise MalformedCacheError("File too small for dyld shared cache header.")

		self.header = self.readStruct(dyld_cache_header, 0)

		# Check magic
		if not self.header.magic.startswith(DYLD_CACHE_MAGIC_PREFIX):
			raise MalformedCacheError(
				f"Invalid dyld shared cache magic: {self.header.magic!r}"
			)

		self._checkTable(
			"mapping",
			self.header.mappingOffset,
			self.header.mappingCount,
			dyld_cache_mapping_info.SIZE
		)
		self._checkTable(
			"images",
			self.header.imagesOffset,
			self.header.imagesCount,
			dyld_cache_image_info.SIZE
		)

		self.mappings = []
		for i in range(self.header.mappingCount):
			offset = self.header.mappingOffset + (i * dyld_cache_mapping_info.SIZE)
			mapping = dyld_cache_mapping_info(self.file, offset)

			if (
				mapping.fileOffset > self.size
				or mapping.size > self.size - mapping.fileOffset
			):
				raise MalformedCacheError(f"Mapping {i} has invalid file range.")

			self.mappings.append(mapping)
			pass

		self.images = []
		for i in range(self.header.imagesCount):
			offset = self.header.imagesOffset + (i * dyld_cache_image_info.SIZE)
			self.images.append(dyld_cache_image_info(self.file, offset))
			pass
		pass

	def _checkTable(self, name: str, offset: int, count: int, entrySize: int) -> None:
		if offset > self.size or count * entrySize > self.size - offset:
			raise MalformedCacheError(
				f"Invalid {name} offset or count (offset: {offset:#x}, count: {count})."
			)
		pass

	@property
	def architecture(self) -> str:
		"""The architecture named in the magic, e.g. "arm64"."""

		return self.header.magic[len(DYLD_CACHE_MAGIC_PREFIX):].strip().decode(
			"utf-8",
			errors="replace"
		)

	def mappingForAddr(self, vmaddr: int) -> Optional[dyld_cache_mapping_info]:
		"""Find the mapping whose [address, address + size) holds vmaddr."""

		for mapping in self.mappings:
			lowBound = mapping.address
			highBound = mapping.address + mapping.size

			if vmaddr >= lowBound and vmaddr < highBound:
				return mapping

		return None

	def convertAddr(self, vmaddr: int) -> Optional[int]:
		"""Translate an unslid address to a file offset.

		Returns:
			The file offset, or None for addresses outside every
			mapping, like the code signature.
		"""

		mapping = self.mappingForAddr(vmaddr)
		if mapping is None:
			return None

		return mapping.fileOffset + (vmaddr - mapping.address)

	def headerContainsField(self, field: str) -> bool:
		"""Check if the cache was built with a header that has the field.

		Older caches have a shorter header, the mapping table starts
		right after it.
		"""

		if not hasattr(self.header, field):
			return False

		fieldDesc = getattr(dyld_cache_header, field)
		fieldEnd = fieldDesc.offset + fieldDesc.size

		return fieldEnd <= self.header.mappingOffset

	def readImagePath(self, imageIndex: int) -> str:
		"""Read the install path of an image.

		Raises:
			MalformedCacheError: The path offset is out of bounds or
				the path is not null terminated.
		"""

		image = self.images[imageIndex]
		if image.pathFileOffset >= self.size:
			raise MalformedCacheError(f"Invalid path offset for image {imageIndex}.")

		try:
			path = self.readString(image.pathFileOffset)
		except MalformedCacheError as e:
			raise MalformedCacheError(
				f"Path string not null-terminated for image {imageIndex}."
			) from e

		return path.decode("utf-8", errors="replace")

	pass
