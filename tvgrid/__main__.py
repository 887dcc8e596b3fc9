import sys

from tvgrid.cli import main

sys.exit(main())
