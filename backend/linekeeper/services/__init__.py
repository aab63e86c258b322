"""Queue engine components."""

from .admission import AdmissionEngine, AdmissionResult, Destination
from .display import DisplayScheduler, default_content
from .grace import GraceTimerManager
from .membership import MembershipStore
from .voice_transfer import TransferOutcome, TransferSession, TransferState, VoiceTransferCoordinator

__all__ = [
    "AdmissionEngine",
    "AdmissionResult",
    "Destination",
    "DisplayScheduler",
    "GraceTimerManager",
    "MembershipStore",
    "TransferOutcome",
    "TransferSession",
    "TransferState",
    "VoiceTransferCoordinator",
    "default_content",
]
