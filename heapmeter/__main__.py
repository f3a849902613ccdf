import sys

from heapmeter.cli import main

sys.exit(main())
