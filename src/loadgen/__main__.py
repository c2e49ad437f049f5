import sys

from src.loadgen.main import main

sys.exit(main())
