from enum import IntEnum
from ctypes import (
	c_char,
	c_uint8,
	c_uint16,
	c_uint32,
	c_uint64,
	c_int32,
)

from DyldSymbolicator.structure import Structure


class LoadCommands(IntEnum):
	"""The load commands the symbolicator looks at.

	Every other command is read as a plain load_command.
	"""

	LC_SYMTAB = 0x2 			# link-edit stab symbol table info
	LC_SEGMENT_64 = 0x19 		# 64-bit segment of this file to be mapped
	LC_UUID = 0x1b 				# the uuid


class mach_header_64(Structure):

	SIZE = 32

	magic: int 			# mach magic number identifier
	cputype: int 		# cpu specifier
	cpusubtype: int 	# machine specifier
	filetype: int 		# type of file
	ncmds: int 			# number of load commands
	sizeofcmds: int 	# the size of all the load commands
	flags: int 			# flags
	reserved: int 		# reserved

	_fields_ = [
		("magic", c_uint32),
		("cputype", c_uint32),
		("cpusubtype", c_uint32),
		("filetype", c_uint32),
		("ncmds", c_uint32),
		("sizeofcmds", c_uint32),
		("flags", c_uint32),
		("reserved", c_uint32),
	]


class load_command(Structure):

	SIZE = 8

	cmd: int 		# type of load command
	cmdsize: int 	# total size of command in bytes

	_fields_ = [
		("cmd", c_uint32),
		("cmdsize", c_uint32),
	]


class segment_command_64(Structure):
	"""
		The 64-bit segment load command indicates that a part of this file is to be
		mapped into a 64-bit task's address space.

		In the cache, fileoff is the offset the segment had in the
		dylib before it was cached, not where the data lives in the cache.
	"""

	SIZE = 72

	cmd: int 		# LC_SEGMENT_64
	cmdsize: int 	# includes sizeof section_64 structs
	segname: bytes 	# segment name
	vmaddr: int 	# memory address of this segment
	vmsize: int 	# memory size of this segment
	fileoff: int 	# file offset of this segment
	filesize: int 	# amount to map from the file
	maxprot: int 	# maximum VM protection
	initprot: int 	# initial VM protection
	nsects: int 	# number of sections in segment
	flags: int 		# flags

	_fields_ = [
		("cmd", c_uint32),
		("cmdsize", c_uint32),
		("segname", c_char * 16),
		("vmaddr", c_uint64),
		("vmsize", c_uint64),
		("fileoff", c_uint64),
		("filesize", c_uint64),
		("maxprot", c_int32),
		("initprot", c_int32),
		("nsects", c_uint32),
		("flags", c_uint32),
	]


class symtab_command(Structure):

	SIZE = 24

	cmd: int 		# LC_SYMTAB
	cmdsize: int 	# sizeof(struct symtab_command)
	symoff: int 	# symbol table offset
	nsyms: int 		# number of symbol table entries
	stroff: int 	# string table offset
	strsize: int 	# string table size in bytes

	_fields_ = [
		("cmd", c_uint32),
		("cmdsize", c_uint32),
		("symoff", c_uint32),
		("nsyms", c_uint32),
		("stroff", c_uint32),
		("strsize", c_uint32),
	]


class uuid_command(Structure):

	SIZE = 24

	cmd: int 		# LC_UUID
	cmdsize: int 	# sizeof(struct uuid_command)
	uuid: bytes 	# the 128-bit uuid

	_fields_ = [
		("cmd", c_uint32),
		("cmdsize", c_uint32),
		("uuid", c_uint8 * 16),
	]


class nlist_64(Structure):

	SIZE = 16

	n_strx: int 	# index into the string table
	n_type: int 	# type flag, see below
	n_sect: int 	# section number or NO_SECT
	n_desc: int 	# see <mach-o/stab.h>
	n_value: int 	# value of this symbol (or stab offset)

	_fields_ = [
		("n_strx", c_uint32),
		("n_type", c_uint8),
		("n_sect", c_uint8),
		("n_desc", c_uint16),
		("n_value", c_uint64),
	]


LoadCommandMap = {
	# Provides a mapping between a load command and its structure.
	LoadCommands.LC_SYMTAB: symtab_command,
	LoadCommands.LC_SEGMENT_64: segment_command_64,
	LoadCommands.LC_UUID: uuid_command,
}
