"""
Caller-facing face authentication engine.

`FaceAuthEngine` is an explicit instance: it owns its identity store, the
engine-wide enrollment lock and the component pipeline. Callers construct and
wire it; nothing is kept in module-level state.

The engine imposes no threading model. Each enroll/verify call is one
sequential pipeline and model inference runs on the calling thread.

Example:
    ```python
    engine = FaceAuthEngine(
        detection_model=OnnxDetectionModel("blaze_face.onnx"),
        recognition_model=OnnxRecognitionModel("facenet_512.onnx"),
        repository=JsonFileIdentityRepository("identities.json"),
        config=Settings(),
    )
    if not engine.initialize():
        raise SystemExit("models failed to load")

    engine.enroll("u1", "Ada", DirectoryImageSource("photos/ada"))
    decision = engine.verify(CameraImageSource(device_index=0))
    ```
"""
import threading
from typing import Optional

from faceauth.core.config import Settings
from faceauth.core.exceptions import ModelNotLoadedError
from faceauth.core.logging import get_logger
from faceauth.domain.entities.identity import IdentityRecord
from faceauth.domain.interfaces.capture.image_source import ImageSource
from faceauth.domain.interfaces.progress import ProgressReporter
from faceauth.domain.interfaces.recognition.models import DetectionModel, RecognitionModel
from faceauth.domain.interfaces.storage.identity_repository import IdentityRepository
from faceauth.domain.value_objects.verification import EngineStatus, IdentitySummary, VerificationDecision
from faceauth.services.detection.blaze_face import BlazeFaceDetector
from faceauth.services.enrollment import EnrollmentManager
from faceauth.services.identity_store import IdentityStore
from faceauth.services.liveness import HeuristicLivenessValidator
from faceauth.services.preprocessing import ImagePreprocessor
from faceauth.services.recognition.embedding_extractor import EmbeddingExtractor
from faceauth.services.verification import VerificationEngine

logger = get_logger(__name__)


def summarize(record: IdentityRecord) -> IdentitySummary:
    return IdentitySummary(
        identity_id=record.identity_id,
        display_name=record.display_name,
        sample_count=record.sample_count,
        enrollment_source=record.enrollment_source,
        updated_at=record.updated_at,
    )


class FaceAuthEngine:
    """Enrollment and verification engine for attendance marking.

    Attributes:
        store: Identity records owned by this engine
        enrollment: Enrollment manager (serialized by the engine-wide lock)
        verification: Verification engine (read-only on store snapshots)
    """

    def __init__(
        self,
        detection_model: DetectionModel,
        recognition_model: RecognitionModel,
        repository: IdentityRepository,
        config: Settings,
    ) -> None:
        self.config = config
        self.detection_model = detection_model
        self.recognition_model = recognition_model
        self._ready = False
        self._lock = threading.Lock()

        preprocessor = ImagePreprocessor(config)
        detector = BlazeFaceDetector(detection_model, preprocessor, config)
        liveness = HeuristicLivenessValidator(preprocessor, config)
        self.extractor = EmbeddingExtractor(detector, liveness, recognition_model, preprocessor, config)

        self.store = IdentityStore(repository, min_samples=config.MIN_ENROLLMENT_SAMPLES)
        self.enrollment = EnrollmentManager(self.extractor, self.store, config, self._lock)
        self.verification = VerificationEngine(self.extractor, self.store, config)

    @property
    def is_ready(self) -> bool:
        return self._ready

    def initialize(self) -> bool:
        """Load both models and the enrolled identities.

        Returns:
            True when the engine is ready; False on any failure, after which
            enroll/verify raise ModelNotLoadedError until a later initialize succeeds
        """
        self._ready = False
        try:
            logger.info("Initializing face models")
            self.detection_model.load()
            self.recognition_model.load()
            self.store.load()
        except Exception as e:
            logger.error("Engine initialization failed", error=str(e), exc_info=True)
            return False

        self._ready = True
        logger.info("Face authentication engine ready", enrolled=len(self.store))
        return True

    def _require_ready(self) -> None:
        if not self._ready:
            raise ModelNotLoadedError("Engine not initialized: models not loaded")

    def enroll(
        self,
        identity_id: str,
        display_name: str,
        source: ImageSource,
        progress: Optional[ProgressReporter] = None,
    ) -> IdentityRecord:
        """Enroll or fully replace an identity. See `EnrollmentManager.enroll`."""
        self._require_ready()
        return self.enrollment.enroll(identity_id, display_name, source, progress)

    def verify(self, source: ImageSource, progress: Optional[ProgressReporter] = None) -> VerificationDecision:
        """Verify one attempt against all enrolled identities. See `VerificationEngine.verify`."""
        self._require_ready()
        return self.verification.verify(source, progress)

    def status(self) -> EngineStatus:
        records = self.store.snapshot()
        return EngineStatus(
            enrolled_count=len(records),
            per_identity_sample_counts={
                identity_id: record.sample_count for identity_id, record in records.items()
            },
            identities=[summarize(record) for record in records.values()],
        )

    def last_enrolled(self) -> Optional[IdentitySummary]:
        """The most recently (re-)enrolled identity, if any."""
        records = self.store.snapshot().values()
        if not records:
            return None
        return summarize(max(records, key=lambda record: record.updated_at))

    def remove(self, identity_id: str) -> bool:
        """Delete one identity. Waits for a running enrollment to finish."""
        with self._lock:
            removed = self.store.remove(identity_id)
        logger.info("Identity removal requested", identity_id=identity_id, removed=removed)
        return removed

    def clear(self) -> None:
        """Delete every enrolled identity. Waits for a running enrollment to finish."""
        with self._lock:
            self.store.clear()
        logger.info("Cleared all enrolled identities")
