"""python -m seekinsight.cli"""

import sys

from .main import main

sys.exit(main())
