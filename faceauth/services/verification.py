"""Verification of a fresh probe against every enrolled identity."""
import time
from itertools import islice
from typing import Dict, List, Optional, Tuple

import numpy as np

from faceauth.core.config import Settings
from faceauth.core.exceptions import (
    InsufficientSamplesError,
    NoEnrolledIdentitiesError,
    UnstableCaptureError,
)
from faceauth.core.logging import get_logger
from faceauth.core.utils.scoring import average_pairwise_score, score_matrix
from faceauth.domain.entities.identity import IdentityRecord
from faceauth.domain.interfaces.capture.image_source import ImageSource
from faceauth.domain.interfaces.progress import NullProgressReporter, ProgressReporter
from faceauth.domain.value_objects.verification import Outcome, ReasonCode, VerificationDecision
from faceauth.services.identity_store import IdentityStore
from faceauth.services.recognition.embedding_extractor import EmbeddingExtractor

logger = get_logger(__name__)


class VerificationEngine:
    """Scores probe embeddings against enrolled identities and applies the acceptance policy.

    The policy is evaluated in a fixed order and the first failing step names
    the rejection reason:

    1. best >= ABSOLUTE_MIN_THRESHOLD
    2. best >= VERIFICATION_THRESHOLD
    3. best - runner_up >= MIN_CONFIDENCE_GAP (only with more than one identity)
    4. best <= SUSPICIOUS_MATCH_CEILING

    Every comparison fails closed: a score that cannot be compared (NaN) rejects.
    """

    def __init__(self, extractor: EmbeddingExtractor, store: IdentityStore, config: Settings) -> None:
        self.extractor = extractor
        self.store = store
        self.config = config

    def collect_probes(self, source: ImageSource, progress: ProgressReporter) -> List[np.ndarray]:
        """Extract exactly PROBE_COUNT embeddings; the first failure aborts the attempt."""
        count = self.config.PROBE_COUNT
        probes: List[np.ndarray] = []
        for index, image_bytes in enumerate(islice(source, count), start=1):
            progress.report(index, count, f"Analyzing capture {index}/{count}...")
            probes.append(self.extractor.extract(image_bytes).embedding)

        if len(probes) < count:
            raise InsufficientSamplesError(len(probes), count)
        return probes

    def identity_scores(
        self, probes: List[np.ndarray], records: Dict[str, IdentityRecord]
    ) -> Dict[str, float]:
        """Mean of the top TOP_K_SCORES probe x sample scores, per identity."""
        top_k = self.config.TOP_K_SCORES
        scores: Dict[str, float] = {}
        for identity_id, record in records.items():
            pair_scores = score_matrix(probes, record.embeddings, self.config.MAX_EMBEDDING_DISTANCE).ravel()
            top = np.sort(pair_scores)[::-1][:top_k]
            scores[identity_id] = float(np.mean(top))
        return scores

    @staticmethod
    def rank(scores: Dict[str, float]) -> Tuple[Optional[str], float, float]:
        """Return (best_id, best_score, runner_up_score)."""
        ordered = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        if not ordered:
            return None, 0.0, 0.0
        best_id, best = ordered[0]
        runner_up = ordered[1][1] if len(ordered) > 1 else 0.0
        return best_id, best, runner_up

    def decide(self, best: float, runner_up: float, identity_count: int) -> Tuple[ReasonCode, str]:
        """Apply the acceptance policy to identity scores."""
        cfg = self.config
        if not best >= cfg.ABSOLUTE_MIN_THRESHOLD:
            return ReasonCode.REJECTED_LOW_CONFIDENCE, (
                f"Face not recognized ({best:.0%} < {cfg.ABSOLUTE_MIN_THRESHOLD:.0%} minimum)"
            )
        if not best >= cfg.VERIFICATION_THRESHOLD:
            return ReasonCode.REJECTED_BELOW_THRESHOLD, (
                f"Face not recognized ({best:.0%} < {cfg.VERIFICATION_THRESHOLD:.0%} required)"
            )
        if identity_count > 1:
            gap = best - runner_up
            if not gap >= cfg.MIN_CONFIDENCE_GAP:
                return ReasonCode.REJECTED_AMBIGUOUS_MATCH, (
                    f"Match ambiguous (gap {gap:.0%} < {cfg.MIN_CONFIDENCE_GAP:.0%} required), try again"
                )
        if not best <= cfg.SUSPICIOUS_MATCH_CEILING:
            return ReasonCode.REJECTED_SUSPICIOUS_MATCH, (
                "Verification failed - suspiciously high match, please use a live face"
            )
        return ReasonCode.ACCEPTED, ""

    def verify(self, source: ImageSource, progress: Optional[ProgressReporter] = None) -> VerificationDecision:
        """
        Verify one attempt's probe images against every enrolled identity.

        Args:
            source: Image source supplying at least PROBE_COUNT images
            progress: Optional progress reporter

        Returns:
            VerificationDecision (accept or reject with a reason code)

        Raises:
            NoEnrolledIdentitiesError: If nobody is enrolled
            InsufficientSamplesError: If the source runs out before PROBE_COUNT images
            ExtractionError: On the first probe that fails extraction
            UnstableCaptureError: If the probes disagree with each other
        """
        started = time.perf_counter()
        progress = progress or NullProgressReporter()

        records = self.store.snapshot()
        if not records:
            raise NoEnrolledIdentitiesError()

        probes = self.collect_probes(source, progress)

        consistency = average_pairwise_score(probes, self.config.MAX_EMBEDDING_DISTANCE)
        if not consistency >= self.config.PROBE_CONSISTENCY_MIN:
            logger.info("Unstable capture", consistency=round(consistency, 3))
            raise UnstableCaptureError(consistency, self.config.PROBE_CONSISTENCY_MIN)

        scores = self.identity_scores(probes, records)
        best_id, best, runner_up = self.rank(scores)
        reason, message = self.decide(best, runner_up, len(records))
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        logger.info(
            "Verification decided",
            reason=reason.value,
            best_identity=best_id,
            best_score=round(best, 4),
            runner_up_score=round(runner_up, 4),
            probe_consistency=round(consistency, 3),
            identities=len(records),
        )

        if reason != ReasonCode.ACCEPTED:
            return VerificationDecision(
                outcome=Outcome.REJECT,
                best_score=best,
                runner_up_score=runner_up,
                reason_code=reason,
                message=message,
                processing_time_ms=elapsed_ms,
            )

        matched = records[best_id]
        return VerificationDecision(
            outcome=Outcome.ACCEPT,
            identity_id=matched.identity_id,
            display_name=matched.display_name,
            best_score=best,
            runner_up_score=runner_up,
            reason_code=reason,
            message=f"Welcome, {matched.display_name}!",
            processing_time_ms=elapsed_ms,
        )
