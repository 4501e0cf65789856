"""Round progression engine for Swiss tournaments."""

from .announce import RoundAnnouncer, parse_round_minutes
from .drop import DropCoordinator
from .errors import (
    BlockedRecipientError,
    BracketProviderError,
    FatalInconsistency,
    MessageNotFoundError,
    RemoteCollaboratorFailure,
    UserFacingError,
)
from .models import (
    Countdown,
    Match,
    Player,
    SeedMove,
    SyntheticBye,
    Tournament,
    TournamentFormat,
    TournamentStatus,
    current_round,
    utc_now,
)
from .registry import TimerRegistry
from .seeding import assign_byes, compute_bye_seeds, remove_synthetic_byes, reseed
from .storage import TournamentStorage
from .timer import RoundTimer, format_time

__all__ = [
    "RoundAnnouncer",
    "parse_round_minutes",
    "DropCoordinator",
    "BlockedRecipientError",
    "BracketProviderError",
    "FatalInconsistency",
    "MessageNotFoundError",
    "RemoteCollaboratorFailure",
    "UserFacingError",
    "Countdown",
    "Match",
    "Player",
    "SeedMove",
    "SyntheticBye",
    "Tournament",
    "TournamentFormat",
    "TournamentStatus",
    "current_round",
    "utc_now",
    "TimerRegistry",
    "assign_byes",
    "compute_bye_seeds",
    "remove_synthetic_byes",
    "reseed",
    "TournamentStorage",
    "RoundTimer",
    "format_time",
]
