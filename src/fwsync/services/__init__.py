"""Rule models, the firewall store and the synchronization engine."""

from fwsync.services.netsecurity import NetSecurityStore
from fwsync.services.store import RuleFilter, RuleStore
from fwsync.services.sync import RuleSynchronizer, SyncReport

__all__ = [
    "NetSecurityStore",
    "RuleFilter",
    "RuleStore",
    "RuleSynchronizer",
    "SyncReport",
]
