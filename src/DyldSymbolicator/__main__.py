import sys

from DyldSymbolicator.cli import main


if "__main__" == __name__:
	sys.exit(main())
