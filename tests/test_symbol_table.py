import struct
import unittest

from DyldSymbolicator.errors import MalformedCacheError
from DyldSymbolicator.file_context import FileContext
from DyldSymbolicator.dyld.dyld_context import DyldContext
from DyldSymbolicator.dyld.local_symbols import LocalSymbolsContext
from DyldSymbolicator.macho.symbol_table import (
	Symbol,
	SymbolTable,
	mergeCandidates
)

from cache_builder import (
	BASE,
	LIBA_OFFSET,
	LIBB_OFFSET,
	LOCAL_SYMBOLS_OFFSET,
	N_FUN_STAB,
	N_SECT_EXT,
	N_SECT_LOCAL,
	N_UNDF_EXT,
	packSymbols,
	standardCache
)


def _symbolTable(symbols):
	strings = bytearray(b"\x00")
	nlists = packSymbols(symbols, strings)
	fileCtx = FileContext(nlists + bytes(strings))
	return SymbolTable(fileCtx, 0, len(symbols), len(nlists), len(strings))


class SymbolTableTestCase(unittest.TestCase):

	def test_closest_symbol(self):
		table = _symbolTable([
			("_b", N_SECT_EXT, 0x200),
			("_a", N_SECT_EXT, 0x100),
			("_c", N_SECT_EXT, 0x300),
		])

		self.assertEqual(table.findClosest(0x250), Symbol("_b", 0x200))
		self.assertEqual(table.findClosest(0x200), Symbol("_b", 0x200))
		self.assertEqual(table.findClosest(0x1FF), Symbol("_a", 0x100))
		self.assertEqual(table.findClosest(0x1000), Symbol("_c", 0x300))
		self.assertIsNone(table.findClosest(0xFF))

	def test_ineligible_symbols(self):
		table = _symbolTable([
			("_real", N_SECT_EXT, 0x100),
			("_undefined", N_UNDF_EXT, 0x180),
			("_stab", N_FUN_STAB, 0x190),
			("_absolute", 0x03, 0x1A0),
			("_indirect", 0x0a, 0x1B0),
		])

		self.assertEqual(table.findClosest(0x1C0), Symbol("_real", 0x100))

	def test_private_external_symbol(self):
		table = _symbolTable([("_private", N_SECT_LOCAL | 0x10, 0x100)])
		self.assertEqual(table.findClosest(0x100), Symbol("_private", 0x100))

	def test_tie_keeps_first(self):
		table = _symbolTable([
			("_first", N_SECT_EXT, 0x100),
			("_second", N_SECT_LOCAL, 0x100),
		])

		self.assertEqual(table.findClosest(0x120).name, "_first")

	def test_monotonic(self):
		symbols = [("_base", N_SECT_EXT, 0x100)]
		target = 0x400
		self.assertEqual(_symbolTable(symbols).findClosest(target).name, "_base")

		# a closer symbol before the target takes over
		symbols.append(("_closer", N_SECT_EXT, 0x300))
		self.assertEqual(_symbolTable(symbols).findClosest(target).name, "_closer")

		# symbols after the target change nothing
		symbols.append(("_after", N_SECT_EXT, 0x401))
		symbols.insert(0, ("_far_after", N_SECT_EXT, 0x10000))
		self.assertEqual(_symbolTable(symbols).findClosest(target).name, "_closer")

		symbols.append(("_closest", N_SECT_LOCAL, 0x3FF))
		self.assertEqual(_symbolTable(symbols).findClosest(target).name, "_closest")

	def test_name_outside_strings_skipped(self):
		nlists = struct.pack("<IBBHQ", 1, N_SECT_EXT, 1, 0, 0x100)
		nlists += struct.pack("<IBBHQ", 200, N_SECT_EXT, 1, 0, 0x200)
		strings = b"\x00_ok\x00"

		fileCtx = FileContext(nlists + strings)
		table = SymbolTable(fileCtx, 0, 2, len(nlists), len(strings))

		self.assertEqual(table.findClosest(0x300), Symbol("_ok", 0x100))

	def test_unterminated_name_skipped(self):
		nlists = struct.pack("<IBBHQ", 1, N_SECT_EXT, 1, 0, 0x100)
		nlists += struct.pack("<IBBHQ", 5, N_SECT_EXT, 1, 0, 0x200)
		strings = b"\x00_ok\x00_cut"

		# the terminator is in the file, but after the string pool
		fileCtx = FileContext(nlists + strings + b"\x00")
		table = SymbolTable(fileCtx, 0, 2, len(nlists), len(strings))

		self.assertEqual(table.findClosest(0x300), Symbol("_ok", 0x100))
		self.assertEqual(table.findClosest(0x1FF), Symbol("_ok", 0x100))

	def test_slice(self):
		table = _symbolTable([
			("_a", N_SECT_EXT, 0x100),
			("_b", N_SECT_EXT, 0x200),
			("_c", N_SECT_EXT, 0x300),
		])

		self.assertEqual(table.findClosest(0x1000, startIndex=0, count=2).name, "_b")
		self.assertEqual(table.findClosest(0x1000, startIndex=2, count=1).name, "_c")
		self.assertIsNone(table.findClosest(0x1000, startIndex=1, count=0))

		with self.assertRaises(IndexError):
			table.findClosest(0x1000, startIndex=2, count=2)

	def test_out_of_bounds(self):
		strings = bytearray(b"\x00")
		nlists = packSymbols([("_a", N_SECT_EXT, 0x100)], strings)
		fileCtx = FileContext(nlists + bytes(strings))

		with self.assertRaises(MalformedCacheError):
			SymbolTable(fileCtx, 0, 2, len(nlists), len(strings))

		with self.assertRaises(MalformedCacheError):
			SymbolTable(fileCtx, 0, 1, len(nlists), len(strings) + 1)


class MergeTestCase(unittest.TestCase):

	def test_tie_keeps_image_symbol(self):
		imageSymbol = Symbol("_image", 100)
		localSymbol = Symbol("_local", 100)
		self.assertIs(mergeCandidates(imageSymbol, localSymbol), imageSymbol)

	def test_greater_local_symbol_wins(self):
		imageSymbol = Symbol("_image", 100)
		localSymbol = Symbol("_local", 101)
		self.assertIs(mergeCandidates(imageSymbol, localSymbol), localSymbol)

	def test_lesser_local_symbol_loses(self):
		imageSymbol = Symbol("_image", 100)
		localSymbol = Symbol("_local", 99)
		self.assertIs(mergeCandidates(imageSymbol, localSymbol), imageSymbol)

	def test_missing_candidates(self):
		symbol = Symbol("_only", 0)
		self.assertIs(mergeCandidates(None, symbol), symbol)
		self.assertIs(mergeCandidates(symbol, None), symbol)
		self.assertIsNone(mergeCandidates(None, None))


class LocalSymbolsTestCase(unittest.TestCase):

	def test_load(self):
		dyldCtx = DyldContext(bytes(standardCache().build()))
		localSymbols = LocalSymbolsContext.load(dyldCtx)

		self.assertIsNotNone(localSymbols)
		self.assertEqual(localSymbols.info.entriesCount, 1)
		self.assertEqual(localSymbols.findEntry(LIBA_OFFSET).nlistCount, 2)
		self.assertIsNone(localSymbols.findEntry(LIBB_OFFSET))

	def test_find_closest(self):
		dyldCtx = DyldContext(bytes(standardCache().build()))
		localSymbols = LocalSymbolsContext.load(dyldCtx)

		self.assertEqual(
			localSymbols.findClosest(LIBA_OFFSET, BASE + 0x1250),
			Symbol("_local_a", BASE + 0x1200)
		)
		self.assertEqual(
			localSymbols.findClosest(LIBA_OFFSET, BASE + 0x1500),
			Symbol("_local_late", BASE + 0x1500)
		)
		self.assertIsNone(localSymbols.findClosest(LIBA_OFFSET, BASE + 0x11FF))
		self.assertIsNone(localSymbols.findClosest(LIBB_OFFSET, BASE + 0x3100))

	def test_entries_are_not_in_image_order(self):
		builder = standardCache()
		builder.setLocalSymbols([
			(LIBB_OFFSET, [("_b_local", N_SECT_LOCAL, BASE + 0x3010)]),
			(LIBA_OFFSET, [("_a_local", N_SECT_LOCAL, BASE + 0x1010)]),
		])
		localSymbols = LocalSymbolsContext.load(DyldContext(bytes(builder.build())))

		self.assertEqual(
			localSymbols.findClosest(LIBA_OFFSET, BASE + 0x3FFF).name,
			"_a_local"
		)
		self.assertEqual(
			localSymbols.findClosest(LIBB_OFFSET, BASE + 0x3FFF).name,
			"_b_local"
		)

	def test_absent(self):
		dyldCtx = DyldContext(bytes(standardCache(localSymbols=False).build()))
		self.assertIsNone(LocalSymbolsContext.load(dyldCtx))

	def test_strings_outside_block(self):
		builder = standardCache()

		# stringsSize
		builder.patch(LOCAL_SYMBOLS_OFFSET + 12, struct.pack("<I", 0x1000))
		dyldCtx = DyldContext(bytes(builder.build()))

		with self.assertLogs("DyldSymbolicator", level="WARNING") as logs:
			self.assertIsNone(LocalSymbolsContext.load(dyldCtx))
		self.assertIn("Ignoring local symbols", logs.output[0])

	def test_block_smaller_than_info(self):
		builder = standardCache()
		builder.headerOverrides["localSymbolsSize"] = 8
		dyldCtx = DyldContext(bytes(builder.build()))

		with self.assertLogs("DyldSymbolicator", level="WARNING"):
			self.assertIsNone(LocalSymbolsContext.load(dyldCtx))

	def test_info_outside_file(self):
		builder = standardCache()
		builder.headerOverrides["localSymbolsOffset"] = 0xFFF0
		dyldCtx = DyldContext(bytes(builder.build()))

		with self.assertLogs("DyldSymbolicator", level="WARNING"):
			self.assertIsNone(LocalSymbolsContext.load(dyldCtx))

	def test_entry_slice_out_of_range(self):
		builder = standardCache()

		# nlistCount of the first entry
		builder.patch(LOCAL_SYMBOLS_OFFSET + 24 + 8, struct.pack("<I", 3))
		localSymbols = LocalSymbolsContext.load(DyldContext(bytes(builder.build())))

		with self.assertLogs("DyldSymbolicator", level="WARNING") as logs:
			self.assertIsNone(localSymbols.findClosest(LIBA_OFFSET, BASE + 0x1250))
		self.assertIn("outside of the table", logs.output[0])


if __name__ == '__main__':
	unittest.main()
