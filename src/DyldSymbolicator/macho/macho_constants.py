MH_MAGIC_64 = 0xfeedfacf 	# the 64-bit mach magic number
MH_CIGAM_64 = 0xcffaedfe 	# NXSwapInt(MH_MAGIC_64)
MH_MAGIC = 0xfeedface 		# the mach magic number
MH_CIGAM = 0xcefaedfe 		# NXSwapInt(MH_MAGIC)


"""
The n_type field really contains four fields:
	unsigned char N_STAB:3,
		N_PEXT:1,
		N_TYPE:3,
		N_EXT:1;
which are used via the following masks.
"""
N_STAB = 0xe0 	# if any of these bits set, a symbolic debugging entry
N_PEXT = 0x10 	# private external symbol bit
N_TYPE = 0x0e 	# mask for the type bits
N_EXT = 0x01 	# external symbol bit, set for external symbols


# Values for N_TYPE bits of the n_type field.
N_UNDF = 0x0 	# undefined, n_sect == NO_SECT
N_ABS = 0x2 	# absolute, n_sect == NO_SECT
N_SECT = 0xe 	# defined in section number n_sect
N_PBUD = 0xc 	# prebound undefined (defined in a dylib)
N_INDR = 0xa 	# indirect

NO_SECT = 0 	# symbol is not in any section


LINKEDIT_SEGMENT_NAME = b"__LINKEDIT"
