import sys

from src.orchestrator.cli import main

sys.exit(main())
