"""
conftune - reconcile postgresql.conf against resource-aware recommendations.

Reads a PostgreSQL configuration file, recommends settings for the host's
memory, CPUs and disk, and lets the operator accept each group of changes
while every other line of the file is kept exactly as written.
"""

__version__ = "0.9.0"
__author__ = "conftune maintainers"
