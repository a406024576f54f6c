import logging
from typing import List, Tuple

import capstone as cp

from DyldSymbolicator.dyld.dyld_context import DyldContext


# Longest instruction on any supported architecture
_MAX_INSTRUCTION_SIZE = 15

# (architecture prefix, capstone arch, capstone mode)
_ARCHITECTURES = (
	("arm64", cp.CS_ARCH_ARM64, cp.CS_MODE_LITTLE_ENDIAN),
	("x86_64", cp.CS_ARCH_X86, cp.CS_MODE_64),
)


def getDisassembler(architecture: str) -> cp.Cs:
	"""Create a disassembler for a cache architecture.

	Args:
		architecture: The architecture from the cache magic,
			e.g. "arm64e" or "x86_64h".

	Raises:
		ValueError: capstone is not set up for the architecture.
	"""

	for prefix, arch, mode in _ARCHITECTURES:
		if architecture.startswith(prefix):
			return cp.Cs(arch, mode)

	raise ValueError(f"Disassembly is not supported for {architecture}")


def disassembleAt(
	dyldCtx: DyldContext,
	addr: int,
	count: int = 1,
	logger: logging.Logger = None
) -> List[Tuple[int, str, str]]:
	"""Disassemble instructions starting at an address.

	Args:
		dyldCtx: The cache.
		addr: The unslid address of the first instruction.
		count: Optional; the maximum number of instructions.

	Returns:
		A list of (address, mnemonic, operands), empty if the address
		is not mapped or the architecture is not supported.
	"""

	logger = logger or logging.getLogger("DyldSymbolicator")

	try:
		disassembler = getDisassembler(dyldCtx.architecture)
	except ValueError as e:
		logger.warning(str(e))
		return []

	mapping = dyldCtx.mappingForAddr(addr)
	if mapping is None:
		logger.warning(f"Unable to disassemble {addr:#x}, it is not mapped.")
		return []

	# don't read past the end of the mapping
	offset = dyldCtx.convertAddr(addr)
	available = mapping.address + mapping.size - addr
	code = dyldCtx.getBytes(offset, min(available, count * _MAX_INSTRUCTION_SIZE))

	return [
		(instrAddr, mnemonic, opStr)
		for instrAddr, _, mnemonic, opStr
		in disassembler.disasm_lite(code, addr, count)
	]
