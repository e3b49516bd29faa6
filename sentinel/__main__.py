import sys

from sentinel.daemon import main

sys.exit(main())
