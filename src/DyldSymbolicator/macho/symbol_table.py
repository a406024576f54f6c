import dataclasses
from typing import Optional

from DyldSymbolicator.errors import MalformedCacheError
from DyldSymbolicator.file_context import FileContext
from DyldSymbolicator.macho.macho_constants import N_STAB, N_TYPE, N_SECT
from DyldSymbolicator.macho.macho_structs import nlist_64


@dataclasses.dataclass(frozen=True)
class Symbol(object):
	name: str
	address: int


def isEligible(entry: nlist_64, targetAddr: int) -> bool:
	"""Check if a symbol entry can name the target address.

	Debugging entries and anything not defined in a section are
	skipped, as are symbols after the target.
	"""

	if entry.n_type & N_STAB:
		return False

	if (entry.n_type & N_TYPE) != N_SECT:
		return False

	return entry.n_value <= targetAddr


def mergeCandidates(
	imageSymbol: Optional[Symbol],
	localSymbol: Optional[Symbol]
) -> Optional[Symbol]:
	"""Pick between the image's own symbol and the local symbol.

	The local symbol only wins when it is strictly closer, an equal
	address keeps the image's symbol.
	"""

	if localSymbol is None:
		return imageSymbol

	if imageSymbol is None:
		return localSymbol

	if localSymbol.address > imageSymbol.address:
		return localSymbol

	return imageSymbol


class SymbolTable(object):

	def __init__(
		self,
		fileCtx: FileContext,
		symbolsOffset: int,
		symbolsCount: int,
		stringsOffset: int,
		stringsSize: int
	) -> None:
		"""An nlist_64 array and its string pool.

		Args:
			fileCtx: The file that holds the table.
			symbolsOffset: File offset of the first nlist_64.
			symbolsCount: Number of entries.
			stringsOffset: File offset of the string pool.
			stringsSize: Size of the string pool.

		Raises:
			MalformedCacheError: The entries or the string pool do
				not fit in the file.
		"""

		super().__init__()

		fileCtx.checkRange(
			symbolsOffset,
			symbolsCount * nlist_64.SIZE,
			what="Symbol table"
		)
		fileCtx.checkRange(stringsOffset, stringsSize, what="String table")

		self._fileCtx = fileCtx
		self.symbolsOffset = symbolsOffset
		self.symbolsCount = symbolsCount
		self.stringsOffset = stringsOffset
		self.stringsSize = stringsSize
		pass

	def __len__(self) -> int:
		return self.symbolsCount

	def entry(self, index: int) -> nlist_64:
		if index < 0 or index >= self.symbolsCount:
			raise IndexError(f"Symbol {index} is out of range.")

		return self._fileCtx.readStruct(
			nlist_64,
			self.symbolsOffset + (index * nlist_64.SIZE)
		)

	def readName(self, entry: nlist_64) -> str:
		stringsEnd = self.stringsOffset + self.stringsSize
		name = self._fileCtx.readString(self.stringsOffset + entry.n_strx, stringsEnd)
		return name.decode("utf-8", errors="replace")

	def findClosest(
		self,
		targetAddr: int,
		startIndex: int = 0,
		count: int = None
	) -> Optional[Symbol]:
		"""Find the eligible symbol closest before the target.

		Among eligible symbols the greatest value wins, the first one
		found is kept when values are equal. Symbols with a name outside
		of the string pool, or one that is not terminated within it, are
		skipped.

		Args:
			targetAddr: The address to look up.
			startIndex: Optional; The first entry to search.
			count: Optional; How many entries to search, defaults to
				the rest of the table.

		Returns:
			The symbol, or None if nothing is eligible.
		"""

		if count is None:
			count = self.symbolsCount - startIndex

		if startIndex < 0 or count < 0 or startIndex + count > self.symbolsCount:
			raise IndexError(
				f"Symbols [{startIndex}, {startIndex + count}) are not in the table."
			)

		best = None
		for index in range(startIndex, startIndex + count):
			entry = self.entry(index)
			if not isEligible(entry, targetAddr):
				continue

			if best is not None and entry.n_value <= best.address:
				continue

			if entry.n_strx >= self.stringsSize:
				continue

			try:
				name = self.readName(entry)
			except MalformedCacheError:
				continue

			best = Symbol(name, entry.n_value)
			pass

		return best

	pass
