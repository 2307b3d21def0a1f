"""Allow ``python -m releaseprep``."""

from releaseprep.cli.main import main

raise SystemExit(main())
