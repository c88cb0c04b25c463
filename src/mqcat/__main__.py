import sys

from .cli import main

sys.exit(main())

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
