import sys

from flintmc.cli import main

sys.exit(main())
