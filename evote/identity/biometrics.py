# evote/identity/biometrics.py

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from evote.errors import ValidationError

logger = logging.getLogger(__name__)

# Normalised Euclidean distance under which two face descriptors are the same person
FACE_MATCH_THRESHOLD = 0.6
DESCRIPTOR_LENGTH = 128


class FaceMatcher:
    """Distance computation between face descriptors.

    Descriptors are the fixed-length float vectors produced client-side by the
    face recognition network; only their distances matter here.
    """

    def __init__(self, threshold: float = FACE_MATCH_THRESHOLD, descriptor_length: int = DESCRIPTOR_LENGTH):
        self.threshold = threshold
        self.descriptor_length = descriptor_length

    def validate_descriptor(self, descriptor) -> List[float]:
        if not isinstance(descriptor, (list, tuple)):
            raise ValidationError("Face descriptor must be a list of numbers")
        if len(descriptor) != self.descriptor_length:
            raise ValidationError(f"Face descriptor must have {self.descriptor_length} values")
        try:
            values = np.asarray(descriptor, dtype=np.float64)
        except (TypeError, ValueError):
            raise ValidationError("Face descriptor must be a list of numbers")
        if not np.all(np.isfinite(values)):
            raise ValidationError("Face descriptor contains invalid values")
        return values.tolist()

    def distance(self, descriptor1: Sequence[float], descriptor2: Sequence[float]) -> float:
        return float(np.linalg.norm(np.asarray(descriptor1, dtype=np.float64) - np.asarray(descriptor2, dtype=np.float64)))

    def closest(self, descriptor: Sequence[float], candidates: Iterable[Tuple[object, Sequence[float]]]) -> Tuple[Optional[object], Optional[float]]:
        """Return ``(key, distance)`` of the nearest stored descriptor, or ``(None, None)``."""
        candidates = [(key, stored) for key, stored in candidates if stored is not None]
        if not candidates:
            return None, None
        stored = np.asarray([s for _, s in candidates], dtype=np.float64)
        distances = np.linalg.norm(stored - np.asarray(descriptor, dtype=np.float64), axis=1)
        index = int(np.argmin(distances))
        return candidates[index][0], float(distances[index])

    def is_match(self, distance: Optional[float]) -> bool:
        return distance is not None and distance < self.threshold

    def similarity(self, distance: float) -> float:
        """Map a distance onto a 0..1 similarity score (1 is identical)."""
        return max(0.0, 1.0 - distance / self.threshold)
