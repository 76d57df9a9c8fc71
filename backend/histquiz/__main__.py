import sys

from histquiz.cli import main

sys.exit(main())
