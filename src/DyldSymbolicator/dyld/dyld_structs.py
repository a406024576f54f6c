"""Structs for dyld

This is mainly sourced from
https://opensource.apple.com/source/dyld/dyld-421.2/launch-cache/dyld_cache_format.h.auto.html

Only the layout understood by the symbolicator is described here,
caches with a longer header are still readable as the extra fields
are never touched.
"""

from ctypes import (
	c_char,
	c_uint8,
	c_uint32,
	c_uint64,
)

from DyldSymbolicator.structure import Structure


DYLD_CACHE_MAGIC_PREFIX = b"dyld_v1"
DYLD_ACCELERATOR_VERSION = 1


class dyld_cache_header(Structure):
	SIZE = 0x98

	magic: bytes 					# e.g. "dyld_v1   arm64"
	mappingOffset: int 				# file offset to first dyld_cache_mapping_info
	mappingCount: int 				# number of dyld_cache_mapping_info entries
	imagesOffset: int 				# file offset to first dyld_cache_image_info
	imagesCount: int 				# number of dyld_cache_image_info entries
	dyldBaseAddress: int 			# base address of dyld when cache was built
	codeSignatureOffset: int 		# file offset of code signature blob
	codeSignatureSize: int 			# size of code signature blob (zero means to end of file)
	slideInfoOffset: int 			# file offset of kernel slid info
	slideInfoSize: int 				# size of kernel slid info
	localSymbolsOffset: int 		# file offset of where local symbols are stored
	localSymbolsSize: int 			# size of local symbols information
	uuid: bytes 					# unique value for each shared cache file
	cacheType: int 					# 0 for development, 1 for production
	branchPoolsOffset: int 			# file offset to table of uint64_t pool addresses
	branchPoolsCount: int 			# number of uint64_t entries
	accelerateInfoAddr: int 		# (unslid) address of optimization info
	accelerateInfoSize: int 		# size of optimization info
	imagesTextOffset: int 			# file offset to first dyld_cache_image_text_info
	imagesTextCount: int 			# number of dyld_cache_image_text_info entries

	_fields_ = [
		("magic", c_char * 16),
		("mappingOffset", c_uint32),
		("mappingCount", c_uint32),
		("imagesOffset", c_uint32),
		("imagesCount", c_uint32),
		("dyldBaseAddress", c_uint64),
		("codeSignatureOffset", c_uint64),
		("codeSignatureSize", c_uint64),
		("slideInfoOffset", c_uint64),
		("slideInfoSize", c_uint64),
		("localSymbolsOffset", c_uint64),
		("localSymbolsSize", c_uint64),
		("uuid", c_uint8 * 16),
		("cacheType", c_uint64),
		("branchPoolsOffset", c_uint32),
		("branchPoolsCount", c_uint32),
		("accelerateInfoAddr", c_uint64),
		("accelerateInfoSize", c_uint64),
		("imagesTextOffset", c_uint64),
		("imagesTextCount", c_uint64),
	]


class dyld_cache_mapping_info(Structure):
	SIZE = 32

	address: int
	size: int
	fileOffset: int
	maxProt: int
	initProt: int

	_fields_ = [
		("address", c_uint64),
		("size", c_uint64),
		("fileOffset", c_uint64),
		("maxProt", c_uint32),
		("initProt", c_uint32),
	]


class dyld_cache_image_info(Structure):
	SIZE = 32

	address: int 			# unslid address of start of __TEXT
	modTime: int
	inode: int
	pathFileOffset: int 	# file offset of path string
	pad: int

	_fields_ = [
		("address", c_uint64),
		("modTime", c_uint64),
		("inode", c_uint64),
		("pathFileOffset", c_uint32),
		("pad", c_uint32),
	]


class dyld_cache_accelerator_info(Structure):
	SIZE = 72

	version: int 				# currently 1
	imageExtrasCount: int 		# does not include aliases
	imagesExtrasOffset: int 	# offset into this chunk of first dyld_cache_image_info_extra
	bottomUpListOffset: int 	# offset into this chunk to start of 16-bit array of sorted image indexes
	dylibTrieOffset: int 		# offset into this chunk to start of trie containing all dylib paths
	dylibTrieSize: int 			# size of trie containing all dylib paths
	initializersOffset: int 	# offset into this chunk to start of initializers list
	initializersCount: int 		# size of initializers list
	dofSectionsOffset: int 		# offset into this chunk to start of DOF sections list
	dofSectionsCount: int 		# size of DOF sections list
	reExportListOffset: int 	# offset into this chunk to start of 16-bit array of re-exports
	reExportCount: int 			# size of re-exports
	depListOffset: int 			# offset into this chunk to start of 16-bit array of dependencies (0x8000 bit set if upward)
	depListCount: int 			# size of dependencies
	rangeTableOffset: int 		# offset into this chunk to start of the range table
	rangeTableCount: int 		# number of dyld_cache_range_entry entries
	dyldSectionAddr: int 		# address of libdyld's __dyld section in unslid cache

	_fields_ = [
		("version", c_uint32),
		("imageExtrasCount", c_uint32),
		("imagesExtrasOffset", c_uint32),
		("bottomUpListOffset", c_uint32),
		("dylibTrieOffset", c_uint32),
		("dylibTrieSize", c_uint32),
		("initializersOffset", c_uint32),
		("initializersCount", c_uint32),
		("dofSectionsOffset", c_uint32),
		("dofSectionsCount", c_uint32),
		("reExportListOffset", c_uint32),
		("reExportCount", c_uint32),
		("depListOffset", c_uint32),
		("depListCount", c_uint32),
		("rangeTableOffset", c_uint32),
		("rangeTableCount", c_uint32),
		("dyldSectionAddr", c_uint64),
	]


class dyld_cache_range_entry(Structure):
	SIZE = 16

	startAddress: int 	# unslid address of start of region
	size: int
	imageIndex: int

	_fields_ = [
		("startAddress", c_uint64),
		("size", c_uint32),
		("imageIndex", c_uint32),
	]


class dyld_cache_local_symbols_info(Structure):
	SIZE = 24

	nlistOffset: int 	# offset into this chunk of nlist entries
	nlistCount: int 	# count of nlist entries
	stringsOffset: int 	# offset into this chunk of string pool
	stringsSize: int 	# byte count of string pool
	entriesOffset: int 	# offset into this chunk of array of dyld_cache_local_symbols_entry
	entriesCount: int 	# number of elements in dyld_cache_local_symbols_entry array

	_fields_ = [
		("nlistOffset", c_uint32),
		("nlistCount", c_uint32),
		("stringsOffset", c_uint32),
		("stringsSize", c_uint32),
		("entriesOffset", c_uint32),
		("entriesCount", c_uint32),
	]


class dyld_cache_local_symbols_entry(Structure):
	SIZE = 12

	dylibOffset: int 		# offset in cache file of start of dylib
	nlistStartIndex: int 	# start index of locals for this dylib
	nlistCount: int 		# number of local symbols for this dylib

	_fields_ = [
		("dylibOffset", c_uint32),
		("nlistStartIndex", c_uint32),
		("nlistCount", c_uint32),
	]
