from __future__ import annotations

"""Console logging setup and the JSON Lines error log."""
