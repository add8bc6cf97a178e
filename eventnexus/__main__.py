import sys

from eventnexus.cli import main

sys.exit(main())
