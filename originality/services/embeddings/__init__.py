from typing import Optional

from originality.core.config import EmbeddingSettings

from .sentence_transformer import CrossEncoderRerankProvider, SentenceTransformerEmbeddingProvider


def build_embedding_provider(config: EmbeddingSettings) -> Optional[SentenceTransformerEmbeddingProvider]:
    if not config.enable_embeddings:
        return None
    return SentenceTransformerEmbeddingProvider(config.model_name)


def build_rerank_provider(config: EmbeddingSettings) -> Optional[CrossEncoderRerankProvider]:
    if not config.enable_rerank:
        return None
    return CrossEncoderRerankProvider(config.rerank_model_name)


__all__ = [
    "CrossEncoderRerankProvider",
    "SentenceTransformerEmbeddingProvider",
    "build_embedding_provider",
    "build_rerank_provider",
]
