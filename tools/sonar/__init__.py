"""Sonar quality gate integration modules.

Split into:
  - transport.py: bounded-timeout HTTP client + Basic/Bearer auth negotiation
  - api.py      : all HTTP endpoints (CE task, analyses search, project status)
  - locator.py  : find the analysis to report on when no scan ran
  - waiter.py   : poll a CE task until SUCCESS / ERROR / timeout
  - gate.py     : build the project status query and fetch the verdict
  - report.py   : verdict -> summary counts + JUnit XML
  - console.py  : plain-text tables
  - config.py   : env/.env/CLI configuration
  - types.py    : small shared data structures

The runner.py module acts as the orchestration layer, and
tools/check_quality_gate.py as the CLI.
"""
