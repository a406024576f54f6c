"""Text output for symbolication results.

The compact form matches atos, "<symbol> (in <image>) + 0x<offset>".
"""

import string
from typing import List, Optional

from DyldSymbolicator.symbolicator import SymbolicationResult


_HEX_DIGITS = frozenset(string.hexdigits)


def parseAddress(text: str) -> int:
	"""Parse a hexadecimal address, with or without a 0x prefix.

	Raises:
		ValueError: The text is not a 64 bit hexadecimal number.
	"""

	digits = text.strip()
	if digits[:2].lower() == "0x":
		digits = digits[2:]

	if not digits or not set(digits) <= _HEX_DIGITS:
		raise ValueError(f"Invalid hexadecimal address '{text}'")

	addr = int(digits, 16)
	if addr > 0xFFFFFFFFFFFFFFFF:
		raise ValueError(f"Address '{text}' does not fit in 64 bits")

	return addr


def displayName(name: str) -> str:
	"""Strip the leading underscore the C compilers add."""

	if name.startswith("_"):
		return name[1:]
	return name


def formatCompact(result: SymbolicationResult) -> str:
	if result.symbol is not None:
		return f"{displayName(result.symbol.name)} (in {result.imageName}) + {result.offset:#x}"  # noqa

	return f"(in {result.imageName}) + {result.offset:#x}"


def formatVerbose(result: SymbolicationResult, imageUUID: Optional[str] = None) -> str:
	lines: List[str] = [f"Image: {result.imagePath}"]
	if imageUUID is not None:
		lines.append(f"UUID: {imageUUID}")

	if result.symbol is not None:
		lines.append(f"Symbol: {displayName(result.symbol.name)}")
		lines.append(f"Symbol address: {result.symbol.address:#x}")
	else:
		lines.append("Symbol: (not found)")
		lines.append(f"Dylib base: {result.loadAddress:#x}")

	lines.append(f"Offset: +{result.offset:#x}")
	return "\n".join(lines)


def formatCacheSummary(magic: bytes, imageCount: int) -> str:
	return "\n".join((
		f"Cache magic: {magic.decode('utf-8', errors='replace')}",
		f"Image count: {imageCount}",
	))
