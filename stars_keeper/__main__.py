import sys

from stars_keeper.cli import main

sys.exit(main())
