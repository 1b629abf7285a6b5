from .score import TrustReport, compute_trust

__all__ = ["TrustReport", "compute_trust"]
