import numpy as np
import pytest

from event_attendance.core.exceptions import ContractViolationException
from event_attendance.schemas.attendance import ConfidenceTier, ValidationPolicy
from event_attendance.services.face_service import FaceMatcher, confidence_level, cosine_similarity


def test_identical_embeddings_score_one():
    assert cosine_similarity([0.2, 0.4, 0.6], [0.2, 0.4, 0.6]) == pytest.approx(1.0)


def test_scale_does_not_matter():
    assert cosine_similarity([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)


def test_opposite_embeddings_clamp_to_zero():
    assert cosine_similarity([1, 0], [-1, 0]) == 0.0


def test_zero_vector_never_matches():
    assert cosine_similarity([0, 0], [1, 0]) == 0.0


def test_dimension_mismatch_is_a_contract_violation():
    with pytest.raises(ContractViolationException):
        cosine_similarity([1, 0], [1, 0, 0])


@pytest.mark.parametrize("similarity,level", [
    (0.99, ConfidenceTier.HIGH),
    (0.95, ConfidenceTier.HIGH),
    (0.90, ConfidenceTier.MEDIUM),
    (0.50, ConfidenceTier.LOW),
])
def test_confidence_level(similarity, level):
    assert confidence_level(similarity) == level


def test_matcher_uses_tier_threshold():
    matcher = FaceMatcher(ValidationPolicy())
    match = matcher.compare([1, 0], [1, 0], ConfidenceTier.MEDIUM)

    assert match.matched
    assert match.threshold == pytest.approx(0.85)
    assert match.confidence_level == ConfidenceTier.HIGH


def test_matcher_default_threshold_from_policy():
    matcher = FaceMatcher(ValidationPolicy(facial_similarity_threshold=0.9))
    match = matcher.compare([0.8, 0.6], [1, 0])

    assert match.similarity == pytest.approx(0.8)
    assert match.threshold == pytest.approx(0.9)
    assert not match.matched


def test_matcher_enforces_configured_dimension():
    matcher = FaceMatcher(ValidationPolicy(face_embedding_dimension=4))
    with pytest.raises(ContractViolationException, match="4 dimensions"):
        matcher.compare([1, 0], [1, 0])


def test_similarity_accepts_arrays_and_returns_float():
    similarity = cosine_similarity(np.array([0.8, 0.6]), [1.0, 0.0])

    assert type(similarity) is float
    assert similarity == pytest.approx(0.8)
