import sys

from claims_decisioning.pipeline.cli import main

sys.exit(main())
