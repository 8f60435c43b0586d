"""qualitygate

Core package for the Sonar quality gate CI step.

Why this exists
---------------
The Sonar integration under ``tools/sonar`` talks HTTP and prints console
output. The things it passes around (scan targets, task references, verdicts,
report summaries) and the filesystem contracts it writes to are owned here so
the CLI and the integration stay thin composition roots over one vocabulary.

* :mod:`qualitygate.domain` - data contracts between pipeline steps
* :mod:`qualitygate.io`     - atomic writers and the scanner descriptor reader
"""

from __future__ import annotations

__version__ = "1.0.0"
