"""Allow ``python -m promoter``."""

from promoter.cli import app

app()
