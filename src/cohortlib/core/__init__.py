"""Core building blocks shared by the cohort, metrics and API layers."""
