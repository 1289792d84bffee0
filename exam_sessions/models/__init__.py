from .assessment import Assessment, AssessmentKind
from .attempt import Attempt
from .access_grant import AccessGrant

__all__ = [
    "Assessment",
    "AssessmentKind",
    "Attempt",
    "AccessGrant",
]
