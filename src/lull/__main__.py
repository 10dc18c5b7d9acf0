import sys

from lull.cli import main

sys.exit(main())
