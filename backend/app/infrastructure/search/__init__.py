from .in_memory_similarity import InMemoryCosineSimilarity, cosine_similarity
from .native_vector_similarity import NativeVectorSimilarity
from .vector_support import prepare_vector_storage, probe_native_vector_support

__all__ = [
    "InMemoryCosineSimilarity",
    "NativeVectorSimilarity",
    "cosine_similarity",
    "prepare_vector_storage",
    "probe_native_vector_support",
]
