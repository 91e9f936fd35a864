import sys

from kitebackfill.main import main

sys.exit(main())
