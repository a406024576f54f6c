import argparse
import logging
import pathlib
import sys
from typing import List, Optional

import progressbar

from DyldSymbolicator import disassembler, formatter
from DyldSymbolicator.errors import (
	CacheIOError,
	MalformedCacheError,
	UnsupportedCacheError
)
from DyldSymbolicator.dyld.dyld_context import DyldContext
from DyldSymbolicator.macho.macho_context import MachOContext
from DyldSymbolicator.symbolicator import Symbolicator, SymbolicationResult


EXIT_RESOLVED = 0
EXIT_NOT_FOUND = 1
EXIT_USAGE = 2
EXIT_MALFORMED = 3
EXIT_IO_ERROR = 4

# Show a progress bar when looking up at least this many addresses
PROGRESS_THRESHOLD = 64


class _DyldSymbolicatorArgs(argparse.Namespace):

	dyld_path: pathlib.Path
	addresses: List[int]
	file: Optional[pathlib.Path]
	verbose_output: bool
	disassemble: bool
	list_images: bool
	filter: Optional[str]
	verbosity: int
	pass


def _addressArg(text: str) -> int:
	try:
		return formatter.parseAddress(text)
	except ValueError as e:
		raise argparse.ArgumentTypeError(str(e))


def _createArgParser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="dyldsym",
		description="Find the image and symbol for addresses in a Dyld Shared Cache.",  # noqa
		epilog="Example: dyldsym dyld_shared_cache_arm64 0x180028000"
	)
	parser.add_argument(
		"dyld_path",
		type=pathlib.Path,
		help="A path to the target DYLD cache."
	)
	parser.add_argument(
		"addresses",
		metavar="address",
		nargs="*",
		type=_addressArg,
		help="Hexadecimal address (with or without 0x prefix)."
	)
	parser.add_argument(
		"-f", "--file",
		type=pathlib.Path,
		help="Read more addresses from a file, one per line."
	)
	parser.add_argument(
		"-V", "--verbose-output",
		action="store_true",
		help="Show cache info and a detailed result."
	)
	parser.add_argument(
		"-d", "--disassemble",
		action="store_true",
		help="Also show the instruction at each address."
	)
	parser.add_argument(
		"-l", "--list-images",
		action="store_true",
		help="List all images in the cache."
	)
	parser.add_argument(
		"--filter",
		help="Filter out images when listing them."
	)
	parser.add_argument(
		"-v", "--verbosity",
		choices=[0, 1, 2, 3],
		default=1,
		type=int,
		help="Increase verbosity, Option 1 is the default. | 0 = None | 1 = Critical Error and Warnings | 2 = 1 + Info | 3 = 2 + debug |"  # noqa
	)

	return parser


def _readAddressFile(path: pathlib.Path) -> List[int]:
	"""Read addresses from a file.

	Blank lines and lines starting with # are skipped.

	Raises:
		CacheIOError: The file could not be read.
		ValueError: A line is not a valid address.
	"""

	try:
		lines = path.read_text().splitlines()
	except OSError as e:
		raise CacheIOError(f"Unable to read {path}: {e}") from e

	addresses = []
	for line in lines:
		line = line.strip()
		if not line or line.startswith("#"):
			continue

		addresses.append(formatter.parseAddress(line))
		pass

	return addresses


def _configureLogging(verbosity: int) -> logging.Logger:
	level = logging.WARNING  # default options

	if verbosity == 0:
		# Set the log level so high that it doesn't do anything
		level = 100
	elif verbosity == 2:
		level = logging.INFO
	elif verbosity == 3:
		level = logging.DEBUG

	logging.basicConfig(
		format="{asctime}:{msecs:03.0f} [{levelname:^9}] {filename}:{lineno:d} : {message}",  # noqa
		datefmt="%H:%M:%S",
		style="{"
	)

	logger = logging.getLogger("DyldSymbolicator")
	logger.setLevel(level)
	return logger


def _listImages(dyldCtx: DyldContext, filterTerm: Optional[str]) -> int:
	print(f"Index| {'Name':40} | Path")
	for index in range(len(dyldCtx.images)):
		imagePath = dyldCtx.readImagePath(index)
		if filterTerm and filterTerm.lower() not in imagePath.lower():
			continue

		imageName = imagePath.split("/")[-1]
		print(f"{index:4} | {imageName:40} | {imagePath}")
		pass

	return EXIT_RESOLVED


def _imageUUID(
	dyldCtx: DyldContext,
	result: SymbolicationResult,
	logger: logging.Logger
) -> Optional[str]:
	try:
		imageUUID = MachOContext(dyldCtx, result.imageOffset).getUUID()
	except MalformedCacheError as e:
		logger.info(f"Unable to read the UUID of {result.imagePath}: {e}")
		return None

	return str(imageUUID).upper() if imageUUID else None


def _printResult(
	args: _DyldSymbolicatorArgs,
	symbolicator: Symbolicator,
	addr: int,
	logger: logging.Logger
) -> int:
	dyldCtx = symbolicator.dyldCtx

	if args.verbose_output:
		print(f"Target address: {addr:#x}")

	result = symbolicator.symbolicate(addr)
	if result is None:
		print(f"Error: Address {addr:#x} not found in any dylib", file=sys.stderr)
		return EXIT_NOT_FOUND

	if result.symbol is None and symbolicator.localSymbols is None:
		print("Note: No local symbols available", file=sys.stderr)

	if args.verbose_output:
		print(formatter.formatVerbose(result, _imageUUID(dyldCtx, result, logger)))
	else:
		print(formatter.formatCompact(result))

	if args.disassemble:
		for instrAddr, mnemonic, opStr in disassembler.disassembleAt(
			dyldCtx,
			addr,
			logger=logger
		):
			print(f"Instruction: {instrAddr:#x}: {mnemonic} {opStr}".rstrip())
		pass

	if args.verbose_output:
		print()

	return EXIT_RESOLVED


def _symbolicateAll(
	args: _DyldSymbolicatorArgs,
	dyldCtx: DyldContext,
	addresses: List[int],
	logger: logging.Logger
) -> int:
	symbolicator = Symbolicator(dyldCtx, logger=logger)

	if args.verbose_output:
		print(formatter.formatCacheSummary(dyldCtx.header.magic, len(dyldCtx.images)))
		print()

	statusBar = None
	if len(addresses) >= PROGRESS_THRESHOLD:
		statusBar = progressbar.ProgressBar(
			max_value=len(addresses),
			redirect_stdout=True
		)

	exitCode = EXIT_RESOLVED
	for i, addr in enumerate(addresses):
		exitCode = max(exitCode, _printResult(args, symbolicator, addr, logger))

		if statusBar:
			statusBar.update(i + 1)
		pass

	if statusBar:
		statusBar.finish()

	logger.info(f"Looked up {len(addresses)} addresses")
	return exitCode


def main(argv: Optional[List[str]] = None) -> int:
	argParser = _createArgParser()
	args = argParser.parse_intermixed_args(argv, namespace=_DyldSymbolicatorArgs())

	addresses = list(args.addresses)
	if args.file:
		try:
			addresses.extend(_readAddressFile(args.file))
		except CacheIOError as e:
			print(f"Error: {e}", file=sys.stderr)
			return EXIT_IO_ERROR
		except ValueError as e:
			print(f"Error: {e}", file=sys.stderr)
			return EXIT_USAGE

	if not addresses and not args.list_images:
		argParser.print_usage(sys.stderr)
		print("Error: no address given", file=sys.stderr)
		return EXIT_USAGE

	wrapStderr = len(addresses) >= PROGRESS_THRESHOLD
	if wrapStderr:
		progressbar.streams.wrap_stderr()  # needed for logging compatability
	logger = _configureLogging(args.verbosity)

	try:
		try:
			dyldFile = open(args.dyld_path, mode="rb")
		except OSError as e:
			raise CacheIOError(f"Unable to open {args.dyld_path}: {e}") from e

		with dyldFile:
			dyldCtx = DyldContext.fromFile(dyldFile)
			try:
				if args.list_images:
					return _listImages(dyldCtx, args.filter)

				return _symbolicateAll(args, dyldCtx, addresses, logger)
			finally:
				dyldCtx.close()

	except CacheIOError as e:
		print(f"Error: {e}", file=sys.stderr)
		return EXIT_IO_ERROR
	except (UnsupportedCacheError, MalformedCacheError) as e:
		print(f"Error: {e}", file=sys.stderr)
		return EXIT_MALFORMED
	finally:
		if wrapStderr:
			progressbar.streams.unwrap_stderr()
