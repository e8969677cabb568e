"""In-memory cosine similarity search over one chunk set."""
import logging
from typing import Iterable, List, Sequence
import numpy as np

from errors import ConfigurationError
from models.chunk import Chunk, RetrievalResult

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors.

    A zero vector has no direction, so its similarity with anything is 0.0.
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    if vec_a.shape != vec_b.shape:
        raise ValueError(f"Vector dimensions differ: {vec_a.shape[0]} vs {vec_b.shape[0]}")

    denominator = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if denominator == 0:
        return 0.0
    return float(np.clip(np.dot(vec_a, vec_b) / denominator, -1.0, 1.0))


class VectorIndex:
    """
    Chunk vectors for one (book, embedding configuration) pair.

    Search is an exact brute-force scan; single-book chunk sets are small
    enough that no approximate structure is needed. The index never copies or
    re-serializes the stored embeddings beyond building one matrix.
    """

    def __init__(self, chunks: Iterable[Chunk]):
        self.chunks: List[Chunk] = list(chunks)
        if self.chunks:
            self._matrix = np.asarray([c.embedding for c in self.chunks], dtype=np.float64)
            if self._matrix.ndim != 2:
                raise ValueError("All chunk embeddings must have the same dimensionality")
            self._norms = np.linalg.norm(self._matrix, axis=1)
        else:
            self._matrix = np.empty((0, 0))
            self._norms = np.empty(0)

    def __len__(self) -> int:
        return len(self.chunks)

    @property
    def dim(self) -> int:
        return self._matrix.shape[1] if self.chunks else 0

    def scores(self, query_vector: Sequence[float]) -> np.ndarray:
        """Cosine similarity of the query against every chunk, in chunk order."""
        query = np.asarray(query_vector, dtype=np.float64)
        if query.shape != (self.dim,):
            raise ValueError(f"Query dimension {query.shape} does not match index dimension {self.dim}")

        denominators = self._norms * np.linalg.norm(query)
        dots = self._matrix @ query
        # Zero-norm rows (or a zero query) score 0.0 instead of dividing by zero
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(denominators > 0, dots / denominators, 0.0)
        return np.clip(similarities, -1.0, 1.0)

    def search(self, query_vector: Sequence[float], top_k: int) -> List[RetrievalResult]:
        """
        Find the ``top_k`` chunks most similar to the query.

        Args:
            query_vector: Query embedding
            top_k: Number of results to return

        Returns:
            RetrievalResults sorted by descending score; ties go to the lower chunk_index

        Raises:
            ConfigurationError: If top_k is not positive
        """
        if top_k <= 0:
            raise ConfigurationError("top_k must be positive")
        if not self.chunks:
            return []

        similarities = self.scores(query_vector)
        order = sorted(
            range(len(self.chunks)),
            key=lambda i: (-similarities[i], self.chunks[i].chunk_index)
        )

        results = [
            RetrievalResult(chunk=self.chunks[i], score=float(similarities[i]))
            for i in order[:top_k]
        ]
        logger.debug(f"Searched {len(self.chunks)} chunks, returning {len(results)}")
        return results

    def subset(self, chunk_ids: Iterable[str]) -> "VectorIndex":
        """A new index over the chunks with the given ids, keeping chunk order."""
        wanted = set(chunk_ids)
        return VectorIndex(c for c in self.chunks if c.id in wanted)


def search(query_vector: Sequence[float], chunks: Iterable[Chunk], top_k: int) -> List[RetrievalResult]:
    """Rank ``chunks`` against ``query_vector`` and return the best ``top_k``."""
    return VectorIndex(chunks).search(query_vector, top_k)
