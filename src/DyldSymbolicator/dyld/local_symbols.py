import logging
from typing import Optional

from DyldSymbolicator.errors import MalformedCacheError
from DyldSymbolicator.dyld.dyld_context import DyldContext
from DyldSymbolicator.dyld.dyld_structs import (
	dyld_cache_local_symbols_info,
	dyld_cache_local_symbols_entry,
)
from DyldSymbolicator.macho.macho_structs import nlist_64
from DyldSymbolicator.macho.symbol_table import Symbol, SymbolTable


class LocalSymbolsContext(object):

	info: dyld_cache_local_symbols_info
	symbolTable: SymbolTable

	def __init__(
		self,
		dyldCtx: DyldContext,
		info: dyld_cache_local_symbols_info,
		logger: logging.Logger = None
	) -> None:
		"""The local symbols that were stripped out of the images.

		Use `LocalSymbolsContext.load` to get a validated instance.
		All offsets in the info are relative to the info itself.
		"""

		super().__init__()

		self._dyldCtx = dyldCtx
		self._logger = logger or logging.getLogger("DyldSymbolicator")
		self.info = info

		infoOff = info._fileOff_
		self.entriesOffset = infoOff + info.entriesOffset
		self.symbolTable = SymbolTable(
			dyldCtx,
			infoOff + info.nlistOffset,
			info.nlistCount,
			infoOff + info.stringsOffset,
			info.stringsSize
		)
		pass

	@classmethod
	def load(
		cls,
		dyldCtx: DyldContext,
		logger: logging.Logger = None
	) -> Optional["LocalSymbolsContext"]:
		"""Locate and validate the local symbols.

		The local symbols are optional, if they are missing or invalid
		None is returned and names are looked up in the images only.
		"""

		logger = logger or logging.getLogger("DyldSymbolicator")
		header = dyldCtx.header

		if header.localSymbolsOffset == 0 or header.localSymbolsSize == 0:
			logger.debug("Cache has no local symbols")
			return None

		try:
			info = cls._validate(dyldCtx)
		except MalformedCacheError as e:
			logger.warning(f"Ignoring local symbols: {e}")
			return None

		return cls(dyldCtx, info, logger=logger)

	@staticmethod
	def _validate(dyldCtx: DyldContext) -> dyld_cache_local_symbols_info:
		header = dyldCtx.header
		blockSize = header.localSymbolsSize

		info = dyldCtx.readStruct(
			dyld_cache_local_symbols_info,
			header.localSymbolsOffset
		)
		if blockSize < dyld_cache_local_symbols_info.SIZE:
			raise MalformedCacheError("Local symbols info is larger than its block.")

		regions = (
			("Local symbol entries", info.nlistOffset, info.nlistCount * nlist_64.SIZE),
			("Local symbol strings", info.stringsOffset, info.stringsSize),
			(
				"Local symbols per image entries",
				info.entriesOffset,
				info.entriesCount * dyld_cache_local_symbols_entry.SIZE
			),
		)
		for name, offset, size in regions:
			if offset + size > blockSize:
				raise MalformedCacheError(
					f"{name} at {offset:#x} (size {size:#x}) leave the local symbols block."  # noqa
				)
			pass

		# The declared block size is not checked against the file, only
		# the parts that are read.
		for name, offset, size in regions:
			dyldCtx.checkRange(header.localSymbolsOffset + offset, size, what=name)

		return info

	def entry(self, index: int) -> dyld_cache_local_symbols_entry:
		if index < 0 or index >= self.info.entriesCount:
			raise IndexError(f"Local symbols entry {index} is out of range.")

		return self._dyldCtx.readStruct(
			dyld_cache_local_symbols_entry,
			self.entriesOffset + (index * dyld_cache_local_symbols_entry.SIZE)
		)

	def findEntry(self, dylibOffset: int) -> Optional[dyld_cache_local_symbols_entry]:
		"""Find the entry for the image with its header at dylibOffset.

		The entries are not in image order, so this is a linear search.
		"""

		for i in range(self.info.entriesCount):
			entry = self.entry(i)
			if entry.dylibOffset == dylibOffset:
				return entry

		return None

	def findClosest(
		self,
		dylibOffset: int,
		targetAddr: int
	) -> Optional[Symbol]:
		"""Find the closest local symbol of an image.

		Returns:
			The symbol, or None if the image has no entry, its slice
			is out of range, or none of its symbols are eligible.
		"""

		entry = self.findEntry(dylibOffset)
		if entry is None:
			self._logger.debug(f"No local symbols for image at {dylibOffset:#x}")
			return None

		start = entry.nlistStartIndex
		count = entry.nlistCount
		if start + count > self.info.nlistCount:
			self._logger.warning(
				f"Local symbols for image at {dylibOffset:#x} ([{start}, {start + count})) are outside of the table ({self.info.nlistCount} entries)."  # noqa
			)
			return None

		return self.symbolTable.findClosest(targetAddr, startIndex=start, count=count)

	pass
