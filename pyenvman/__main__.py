import sys

from pyenvman.main import main

sys.exit(main())
