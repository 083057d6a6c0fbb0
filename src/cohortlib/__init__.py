"""Privacy-preserving interest cohorts: assignment, metrics and a budgeted external API."""

__version__ = "0.1.0"
