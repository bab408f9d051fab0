"""Test doubles shared by the test suite."""

import asyncio
import re
from typing import Dict, List, Optional, Sequence, Tuple

from semroute.contracts import Route
from semroute.embedding import Embedder
from semroute.index import Index


POLITICS_UTTERANCES = [
    "isn't politics the best thing ever",
    "they will save the country!",
]
CHITCHAT_UTTERANCES = [
    "how's the weather today?",
    "lovely weather today",
]
OFF_TOPIC_QUERY = "what time is it"

_TOKEN_RE = re.compile(r"[a-z']+")


def tokenize(text: str) -> List[str]:
    return _TOKEN_RE.findall(text.lower())


class BagOfWordsEmbedder(Embedder):
    """Deterministic embedder counting words of a fixed vocabulary.

    The last component is a constant bias so that no text maps to the zero
    vector; words outside the vocabulary are ignored.
    """

    def __init__(self, texts: Sequence[str], bias: float = 2.0):
        vocabulary: Dict[str, int] = {}
        for text in texts:
            for token in tokenize(text):
                vocabulary.setdefault(token, len(vocabulary))
        self.vocabulary = vocabulary
        self.bias = bias
        self.query_calls = 0
        self.document_calls = 0

    @property
    def dimension(self) -> int:
        return len(self.vocabulary) + 1

    def _embed(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        for token in tokenize(text):
            if token in self.vocabulary:
                vector[self.vocabulary[token]] += 1.0
        vector[-1] = self.bias
        norm = sum(x * x for x in vector) ** 0.5
        return [x / norm for x in vector]

    async def embed_query(self, text: str) -> List[float]:
        self.query_calls += 1
        return self._embed(text)

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.document_calls += 1
        return [self._embed(text) for text in texts]


class ConstantEmbedder(Embedder):
    """Embedder returning the same vector for every text."""

    def __init__(self, vector: Sequence[float]):
        self.vector = list(vector)

    async def embed_query(self, text: str) -> List[float]:
        return list(self.vector)

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [list(self.vector) for _ in texts]


class StubIndex(Index):
    """Index returning a fixed hit list, recording every call."""

    name = "stub"

    def __init__(self, hits: Optional[List[Tuple[str, float]]] = None):
        self.hits = list(hits or [])
        self.dimension: Optional[int] = None
        self.added: List[Route] = []
        self.deleted: List[str] = []
        self.queries: List[Tuple[List[float], int]] = []
        self.closed = False

    async def initialize(self, dimension: int) -> None:
        self.dimension = dimension

    async def add(self, routes: Sequence[Route]) -> None:
        self.added.extend(routes)

    async def delete(self, route_name: str) -> None:
        self.deleted.append(route_name)

    async def query(self, vector: Sequence[float], top_k: int) -> List[Tuple[str, float]]:
        self.queries.append((list(vector), top_k))
        return list(self.hits)

    async def get_routes(self) -> List[Route]:
        return list(self.added)

    async def delete_index(self) -> None:
        self.added = []

    async def close(self) -> None:
        self.closed = True


class LoopBoundIndex(StubIndex):
    """Stub index whose client only works on the loop that initialized it, like asyncpg."""

    name = "loop-bound"
    loop_bound = True

    def __init__(self, hits: Optional[List[Tuple[str, float]]] = None):
        super().__init__(hits)
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    async def initialize(self, dimension: int) -> None:
        self.loop = asyncio.get_running_loop()
        await super().initialize(dimension)

    async def query(self, vector: Sequence[float], top_k: int) -> List[Tuple[str, float]]:
        if asyncio.get_running_loop() is not self.loop:
            raise RuntimeError("attached to a different loop")
        return await super().query(vector, top_k)
