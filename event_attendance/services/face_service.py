"""
Face Service - comparison of face embeddings
"""
from typing import NamedTuple, Optional, Sequence

import numpy as np

from event_attendance.core.exceptions import ContractViolationException
from event_attendance.schemas.attendance import ConfidenceTier, ValidationPolicy


class FaceMatch(NamedTuple):
    similarity: float
    threshold: float
    matched: bool
    confidence_level: ConfidenceTier


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity clamped to [0, 1]

    Opposite or orthogonal embeddings both score 0. A zero vector never
    matches anything.
    """
    probe = np.asarray(a, dtype=float)
    reference = np.asarray(b, dtype=float)
    if probe.shape != reference.shape:
        raise ContractViolationException(
            "face embeddings must have the same dimension",
            {"probe_dimension": probe.size, "reference_dimension": reference.size}
        )

    norm = np.linalg.norm(probe) * np.linalg.norm(reference)
    if norm == 0:
        return 0.0

    return float(np.clip(np.dot(probe, reference) / norm, 0.0, 1.0))


def confidence_level(similarity: float) -> ConfidenceTier:
    if similarity >= 0.95:
        return ConfidenceTier.HIGH
    if similarity >= 0.85:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


class FaceMatcher:
    def __init__(self, policy: Optional[ValidationPolicy] = None) -> None:
        self.policy = policy or ValidationPolicy()

    def compare(
        self,
        probe: Sequence[float],
        reference: Sequence[float],
        tier: Optional[ConfidenceTier] = None
    ) -> FaceMatch:
        """
        Compare a captured embedding with the employee's stored one

        Raises:
            ContractViolationException: If the embeddings have different or
                unexpected dimensions
        """
        self.ensure_probe_dimension(probe)

        similarity = cosine_similarity(probe, reference)
        threshold = self.policy.threshold_for(tier)

        return FaceMatch(
            similarity=similarity,
            threshold=threshold,
            matched=similarity >= threshold,
            confidence_level=confidence_level(similarity)
        )

    def ensure_probe_dimension(self, probe: Sequence[float]) -> None:
        dimension = self.policy.face_embedding_dimension
        if dimension is not None and len(probe) != dimension:
            raise ContractViolationException(
                f"face embedding must have exactly {dimension} dimensions",
                {"probe_dimension": len(probe)}
            )
