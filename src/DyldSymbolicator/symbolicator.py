import dataclasses
import logging
import posixpath
from typing import Optional

from DyldSymbolicator.errors import MalformedCacheError
from DyldSymbolicator.dyld.dyld_context import DyldContext
from DyldSymbolicator.dyld.range_index import RangeIndex
from DyldSymbolicator.dyld.local_symbols import LocalSymbolsContext

from DyldSymbolicator.macho.macho_context import MachOContext
from DyldSymbolicator.macho.macho_constants import LINKEDIT_SEGMENT_NAME
from DyldSymbolicator.macho.macho_structs import LoadCommands, symtab_command
from DyldSymbolicator.macho.symbol_table import (
	Symbol,
	SymbolTable,
	mergeCandidates
)


ADDRESS_MASK = 0xFFFFFFFFFFFFFFFF


@dataclasses.dataclass(frozen=True)
class SymbolicationResult(object):
	address: int 		# the address that was looked up
	imageIndex: int
	imagePath: str
	loadAddress: int 	# unslid address of the image's header
	imageOffset: int 	# file offset of the image's header
	symbol: Optional[Symbol] = None

	@property
	def imageName(self) -> str:
		return posixpath.basename(self.imagePath)

	@property
	def baseAddress(self) -> int:
		"""The address the offset is measured from."""

		if self.symbol is not None:
			return self.symbol.address
		return self.loadAddress

	@property
	def offset(self) -> int:
		return (self.address - self.baseAddress) & ADDRESS_MASK


class Symbolicator(object):

	rangeIndex: RangeIndex
	localSymbols: Optional[LocalSymbolsContext]

	def __init__(self, dyldCtx: DyldContext, logger: logging.Logger = None) -> None:
		"""Looks up the image and symbol for addresses in a cache.

		The range index and the local symbols are loaded once, the
		image's own symbol table is located again for every lookup.

		Args:
			dyldCtx: A validated cache.
			logger: Optional; defaults to the "DyldSymbolicator" logger.

		Raises:
			UnsupportedCacheError: The cache has no accelerator info.
			MalformedCacheError: The accelerator info is invalid.
		"""

		super().__init__()

		self.dyldCtx = dyldCtx
		self._logger = logger or logging.getLogger("DyldSymbolicator")

		self.rangeIndex = RangeIndex.load(dyldCtx, logger=self._logger)
		self.localSymbols = LocalSymbolsContext.load(dyldCtx, logger=self._logger)
		pass

	def symbolicate(self, addr: int) -> Optional[SymbolicationResult]:
		"""Find the image and closest symbol for an address.

		Args:
			addr: An unslid address.

		Returns:
			None if no image contains the address. Otherwise the result,
			its symbol is None when neither symbol source had an eligible
			symbol.

		Raises:
			MalformedCacheError: The range table points to an image that
				does not exist or has an invalid path.
		"""

		imageIndex = self.rangeIndex.findOwningImage(addr)
		if imageIndex is None:
			self._logger.debug(f"No range entry contains {addr:#x}")
			return None

		if imageIndex >= len(self.dyldCtx.images):
			raise MalformedCacheError(
				f"Range table references image {imageIndex}, but there are only {len(self.dyldCtx.images)}."  # noqa
			)

		image = self.dyldCtx.images[imageIndex]
		dylibOffset = self.dyldCtx.convertAddr(image.address)
		if dylibOffset is None:
			self._logger.warning(
				f"Image {imageIndex} at {image.address:#x} is not in any mapping."
			)
			return None

		imagePath = self.dyldCtx.readImagePath(imageIndex)
		self._logger.debug(f"{addr:#x} is in {imagePath} (header at {dylibOffset:#x})")

		imageSymbol = self._findImageSymbol(dylibOffset, addr)
		localSymbol = None
		if self.localSymbols is not None:
			localSymbol = self._findLocalSymbol(dylibOffset, addr)

		return SymbolicationResult(
			address=addr,
			imageIndex=imageIndex,
			imagePath=imagePath,
			loadAddress=image.address,
			imageOffset=dylibOffset,
			symbol=mergeCandidates(imageSymbol, localSymbol)
		)

	def imageSymbolTable(self, dylibOffset: int) -> Optional[SymbolTable]:
		"""Locate the symbol table in an image's header.

		The symtab offsets are relative to the file the image was
		built as. The __LINKEDIT segment is used to move them to where
		the data is in the cache.

		Returns:
			The symbol table, or None if the image does not have one.

		Raises:
			MalformedCacheError: The header, load commands, or the
				symbol table are out of bounds.
		"""

		machoCtx = MachOContext(self.dyldCtx, dylibOffset)

		symtab: symtab_command = machoCtx.getLoadCommand(LoadCommands.LC_SYMTAB)
		linkedit = machoCtx.segments.get(LINKEDIT_SEGMENT_NAME)
		if symtab is None or linkedit is None or linkedit.vmaddr == 0:
			self._logger.debug(f"Image at {dylibOffset:#x} has no symtab or linkedit")
			return None

		linkeditOff = self.dyldCtx.convertAddr(linkedit.vmaddr)
		if linkeditOff is None:
			raise MalformedCacheError(
				f"__LINKEDIT at {linkedit.vmaddr:#x} is not in any mapping."
			)

		symbolsOffset = linkeditOff + symtab.symoff - linkedit.fileoff
		stringsOffset = linkeditOff + symtab.stroff - linkedit.fileoff
		return SymbolTable(
			self.dyldCtx,
			symbolsOffset,
			symtab.nsyms,
			stringsOffset,
			symtab.strsize
		)

	def _findImageSymbol(self, dylibOffset: int, addr: int) -> Optional[Symbol]:
		try:
			symbolTable = self.imageSymbolTable(dylibOffset)
			if symbolTable is None:
				return None

			return symbolTable.findClosest(addr)
		except MalformedCacheError as e:
			self._logger.warning(f"Unable to search symbols of image at {dylibOffset:#x}: {e}")  # noqa
			return None

	def _findLocalSymbol(self, dylibOffset: int, addr: int) -> Optional[Symbol]:
		try:
			return self.localSymbols.findClosest(dylibOffset, addr)
		except MalformedCacheError as e:
			self._logger.warning(f"Unable to search local symbols of image at {dylibOffset:#x}: {e}")  # noqa
			return None

	pass
