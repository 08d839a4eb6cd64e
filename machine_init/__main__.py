import sys

from machine_init.cli import main

raise SystemExit(main(sys.argv[1:]))
