"""Services for scheduling logic."""

from .catalog import RoleCatalog, validate_definition
from .constraints import can_assign_person, validate_partition, validate_program
from .ledger import AssignmentLedger, LedgerSnapshot
from .locks import CommitLockTable
from .roster import Roster
from .scoring import rank_candidates, score_candidates

__all__ = [
    "RoleCatalog",
    "validate_definition",
    "can_assign_person",
    "validate_partition",
    "validate_program",
    "AssignmentLedger",
    "LedgerSnapshot",
    "CommitLockTable",
    "Roster",
    "rank_candidates",
    "score_candidates",
]
