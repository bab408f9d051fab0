"""Port interface for text embedding."""

from abc import ABC, abstractmethod
from typing import List


class Embedder(ABC):
    """Abstract port for producing fixed-dimension text embeddings."""

    @abstractmethod
    async def embed_query(self, text: str) -> List[float]:
        """
        Embed a single query text.

        Args:
            text: The text to embed.

        Returns:
            Embedding vector of dimension d.
        """
        pass

    @abstractmethod
    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a batch of texts.

        Args:
            texts: The texts to embed.

        Returns:
            One embedding vector per text, all of dimension d.
        """
        pass
