import logging
from typing import Optional

from DyldSymbolicator.errors import MalformedCacheError, UnsupportedCacheError
from DyldSymbolicator.dyld.dyld_context import DyldContext
from DyldSymbolicator.dyld.dyld_structs import (
	DYLD_ACCELERATOR_VERSION,
	dyld_cache_accelerator_info,
	dyld_cache_range_entry,
)


class RangeIndex(object):

	info: dyld_cache_accelerator_info

	def __init__(
		self,
		dyldCtx: DyldContext,
		info: dyld_cache_accelerator_info,
		infoOffset: int
	) -> None:
		"""The sorted range table from the accelerator info.

		Use `RangeIndex.load` to get a validated instance. Entries
		are read on demand, the table is assumed to be sorted by start
		address with no overlaps.

		Args:
			dyldCtx: The cache the table is in.
			info: The accelerator info.
			infoOffset: The file offset of the accelerator info.
		"""

		super().__init__()

		self._dyldCtx = dyldCtx
		self.info = info
		self.tableOffset = infoOffset + info.rangeTableOffset
		self.count = info.rangeTableCount
		pass

	@classmethod
	def load(
		cls,
		dyldCtx: DyldContext,
		logger: logging.Logger = None
	) -> "RangeIndex":
		"""Locate and validate the range table.

		Raises:
			UnsupportedCacheError: The cache has no accelerator info.
			MalformedCacheError: The accelerator info or the range
				table is invalid.
		"""

		logger = logger or logging.getLogger("DyldSymbolicator")
		header = dyldCtx.header

		if (
			not dyldCtx.headerContainsField("accelerateInfoSize")
			or header.accelerateInfoAddr == 0
			or header.accelerateInfoSize == 0
		):
			raise UnsupportedCacheError(
				"This cache lacks accelerator info. Only iOS 9+ / macOS 10.11+ caches are supported."  # noqa
			)

		infoOffset = dyldCtx.convertAddr(header.accelerateInfoAddr)
		if infoOffset is None:
			raise MalformedCacheError(
				f"Accelerator info address {header.accelerateInfoAddr:#x} is not in any mapping."  # noqa
			)

		info = dyldCtx.readStruct(dyld_cache_accelerator_info, infoOffset)
		if info.version != DYLD_ACCELERATOR_VERSION:
			raise MalformedCacheError(
				f"Unsupported accelerator info version: {info.version}"
			)

		if info.rangeTableCount == 0:
			raise MalformedCacheError("Accelerator info has an empty range table.")

		dyldCtx.checkRange(
			infoOffset + info.rangeTableOffset,
			info.rangeTableCount * dyld_cache_range_entry.SIZE,
			what="Range table"
		)

		logger.debug(
			f"Range table at {infoOffset + info.rangeTableOffset:#x} with {info.rangeTableCount} entries"  # noqa
		)
		return cls(dyldCtx, info, infoOffset)

	def __len__(self) -> int:
		return self.count

	def entry(self, index: int) -> dyld_cache_range_entry:
		if index < 0 or index >= self.count:
			raise IndexError(f"Range entry {index} is out of range.")

		return self._dyldCtx.readStruct(
			dyld_cache_range_entry,
			self.tableOffset + (index * dyld_cache_range_entry.SIZE)
		)

	def findEntry(self, addr: int) -> Optional[dyld_cache_range_entry]:
		"""Binary search for the entry containing the address.

		Each entry covers [startAddress, startAddress + size).

		Returns:
			The entry, or None if no entry contains the address.
		"""

		low = 0
		high = self.count
		while low < high:
			mid = (low + high) // 2
			entry = self.entry(mid)

			if addr < entry.startAddress:
				high = mid
			elif addr >= entry.startAddress + entry.size:
				low = mid + 1
			else:
				return entry

		return None

	def findOwningImage(self, addr: int) -> Optional[int]:
		"""Get the index of the image that contains the address."""

		entry = self.findEntry(addr)
		if entry is None:
			return None

		return entry.imageIndex

	pass
