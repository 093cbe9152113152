# WorkLog/aggregation/prefilter.py

import logging
import re

import numpy as np
from sklearn.feature_extraction.text import HashingVectorizer

from WorkLog.models import WIPEntry

log = logging.getLogger(__name__)


class TextPrefilter:
    """
    Cheap string-similarity gate in front of the classifier.

    Entries are hashed into character n-gram vectors; pairs whose cosine
    similarity is below `min_similarity` are rejected without a classifier
    round trip. With `min_similarity <= 0` every pair passes.
    """

    def __init__(self, min_similarity: float, n_features: int = 1024) -> None:
        self.min_similarity = min_similarity
        self.vectorizer = HashingVectorizer(
            n_features=n_features,
            analyzer="char_wb",
            ngram_range=(2, 4),
            alternate_sign=False,
            norm=None,
        )

    @property
    def enabled(self) -> bool:
        return self.min_similarity > 0

    @staticmethod
    def _normalize(s: str) -> str:
        s = s.lower()
        s = re.sub(r"[^\w\s]", " ", s)
        return re.sub(r"\s+", " ", s).strip()

    def entry_text(self, entry: WIPEntry) -> str:
        return self._normalize(f"{entry.project_name} {entry.description}")

    def vectorize(self, text: str) -> np.ndarray:
        vec = self.vectorizer.transform([text])
        return vec.toarray()[0]

    def similarity(self, a: WIPEntry, b: WIPEntry) -> float:
        va = self.vectorize(self.entry_text(a))
        vb = self.vectorize(self.entry_text(b))
        return float(np.dot(va, vb) / (np.linalg.norm(va) * np.linalg.norm(vb) + 1e-8))

    def rejects(self, a: WIPEntry, b: WIPEntry) -> bool:
        if not self.enabled:
            return False
        score = self.similarity(a, b)
        if score < self.min_similarity:
            log.debug(f"Pre-filter rejected {a.id} / {b.id} (similarity {score:.3f})")
            return True
        return False
