from .base import Firewall, VerificationPipeline
from .constraints import ConstraintLimits, PreCheckResult, PreConstraintValidator, constraint_satisfaction
from .grounding import DataPoint, PrefillSearchFirewall, Triangulator, TriangulationFirewall
from .dual_model import DualModelFirewall, cross_validate
from .correction import CorrectionFirewall, CorrectionResult, correct
from .audit import AuditFirewall, Auditor
from .analysis import check_time_validity, detect_contradictions, visualize_risk
from .sources import source_credibility, source_independence

__all__ = [
    "Firewall",
    "VerificationPipeline",
    "ConstraintLimits",
    "PreCheckResult",
    "PreConstraintValidator",
    "constraint_satisfaction",
    "DataPoint",
    "PrefillSearchFirewall",
    "Triangulator",
    "TriangulationFirewall",
    "DualModelFirewall",
    "cross_validate",
    "CorrectionFirewall",
    "CorrectionResult",
    "correct",
    "AuditFirewall",
    "Auditor",
    "check_time_validity",
    "detect_contradictions",
    "visualize_risk",
    "source_credibility",
    "source_independence",
]
