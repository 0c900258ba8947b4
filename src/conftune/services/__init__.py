"""Reconciliation engine for postgresql.conf."""

from conftune.services.conffile import ConfigFileState, KeyTable, build_key_table
from conftune.services.reconcile import Decision, GroupDecisions, Reason, decide_group
from conftune.services.patch import PatchWriter
from conftune.services.snapshot import Profile, ResourceSnapshot
from conftune.services.tuner import Tuner, TuneResult

__all__ = [
    "ConfigFileState",
    "Decision",
    "GroupDecisions",
    "KeyTable",
    "PatchWriter",
    "Profile",
    "Reason",
    "ResourceSnapshot",
    "TuneResult",
    "Tuner",
    "build_key_table",
    "decide_group",
]
