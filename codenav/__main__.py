import sys

from codenav.cli import main

sys.exit(main())
