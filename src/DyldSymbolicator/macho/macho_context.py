import uuid
from typing import List, Dict, Optional

from DyldSymbolicator.errors import MalformedCacheError
from DyldSymbolicator.file_context import FileContext

from DyldSymbolicator.macho.macho_constants import (
	MH_MAGIC_64,
	MH_MAGIC,
	MH_CIGAM,
)
from DyldSymbolicator.macho.macho_structs import (
	LoadCommandMap,
	LoadCommands,
	load_command,
	mach_header_64,
	segment_command_64
)


class MachOContext(object):

	loadCommands: List[load_command]

	segments: Dict[bytes, segment_command_64]
	segmentsI: List[segment_command_64]

	def __init__(
		self,
		fileCtx: FileContext,
		offset: int
	) -> None:
		"""A wrapper around a MachO file inside the cache.

		Provides the load commands and segments of an image.

		Args:
			fileCtx: The cache that holds the image.
			offset: The offset to the header in the file.

		Raises:
			MalformedCacheError: There is no 64 bit MachO header at the
				offset, or its load commands leave the file.
		"""

		super().__init__()

		self.fileCtx = fileCtx
		self.fileOffset = offset

		self.header = fileCtx.readStruct(mach_header_64, offset)

		# check to make sure the MachO file is 64 bit
		magic = self.header.magic
		if magic == MH_MAGIC or magic == MH_CIGAM:
			raise MalformedCacheError("MachOContext doesn't support 32bit files!")
		elif magic != MH_MAGIC_64:
			raise MalformedCacheError(
				f"No MachO header at {offset:#x} (magic: {magic:#x})."
			)

		self._parseLoadCommands()
		pass

	def getLoadCommand(self, cmdType: LoadCommands) -> Optional[load_command]:
		"""Get the first load command of a type, or None."""

		return next(
			(cmd for cmd in self.loadCommands if cmd.cmd == cmdType),
			None
		)

	def getUUID(self) -> Optional[uuid.UUID]:
		uuidCmd = self.getLoadCommand(LoadCommands.LC_UUID)
		if uuidCmd is None:
			return None

		return uuid.UUID(bytes=bytes(uuidCmd.uuid))

	def _parseLoadCommands(self) -> None:
		"""Read the load commands and collect the segments.

		Parsing stops quietly at the first command that is too small or
		runs past sizeofcmds, the commands before it are kept.
		"""

		self.loadCommands = []

		self.segments = {}
		self.segmentsI = []

		cmdOff = self.fileOffset + len(self.header)
		cmdsEnd = cmdOff + self.header.sizeofcmds
		self.fileCtx.checkRange(
			cmdOff,
			self.header.sizeofcmds,
			what="Load commands"
		)

		for _ in range(self.header.ncmds):
			if cmdOff >= cmdsEnd:
				break

			command = self.fileCtx.readStruct(load_command, cmdOff)
			if (
				command.cmdsize < load_command.SIZE
				or command.cmdsize > cmdsEnd - cmdOff
			):
				break

			commandType = LoadCommandMap.get(command.cmd, load_command)
			if commandType.SIZE > command.cmdsize:
				break

			command = self.fileCtx.readStruct(commandType, cmdOff)

			cmdOff += command.cmdsize
			self.loadCommands.append(command)

			# populate the segments at this point too
			if isinstance(command, segment_command_64):
				self.segments[command.segname] = command
				self.segmentsI.append(command)
				pass
			pass
		pass

	pass
