import sys

from wallet_tracker.cli import main

sys.exit(main())
