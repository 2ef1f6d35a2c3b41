"""Exit codes for the secpipe CLI.

- 0: Pipeline succeeded, or completed with continue-on-error failures
- 1: Pipeline failed (a fail-fast step aborted the run)
- 3: Invalid usage (bad arguments, missing or invalid pipeline definition)
- 130: Run cancelled by the operator (SIGINT/SIGTERM)
"""

from __future__ import annotations

EXIT_SUCCESS = 0
EXIT_PIPELINE_FAILED = 1
EXIT_INVALID_USAGE = 3
EXIT_CANCELLED = 130
