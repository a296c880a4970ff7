from datetime import datetime
from pydantic import BaseModel, Field
from typing import Callable, Dict, List, Optional, Set

def upload_identity(name: str, chunks: int) -> str:
    # chunks is an int, so the last colon always separates it from the name
    return f"{name}:{chunks}"

class PendingUpload(BaseModel):
    name: str
    chunks: int
    buffers: List[bytes] = Field(default_factory=list)
    indices: List[int] = Field(default_factory=list)
    last_updated: datetime

    @property
    def received(self) -> int:
        return len(self.buffers)

    @property
    def size(self) -> int:
        return sum(len(buffer) for buffer in self.buffers)

    @property
    def is_complete(self) -> bool:
        return self.received == self.chunks

    def assemble(self) -> bytes:
        """Join the buffers by declared chunk index."""
        ordered = sorted(zip(self.indices, self.buffers), key=lambda pair: pair[0])
        return b"".join(buffer for _, buffer in ordered)

class UploadTable:
    """In-memory table of uploads that are still waiting for chunks.

    Every method runs without awaiting, so on a single event loop each call
    is one atomic step with respect to other requests and the sweeper.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._uploads: Dict[str, PendingUpload] = {}
        self.clock = clock

    def get(self, identity: str) -> Optional[PendingUpload]:
        return self._uploads.get(identity)

    def get_or_create(self, identity: str, name: str, chunks: int) -> PendingUpload:
        upload = self._uploads.get(identity)
        if upload is None:
            upload = PendingUpload(name=name, chunks=chunks, last_updated=self.clock())
            self._uploads[identity] = upload
        return upload

    def append_chunk(self, identity: str, data: bytes, index: int = 0) -> int:
        """Store a chunk and return how many distinct chunk indices are held.

        A retried index replaces the buffer it already has, so it never
        counts twice toward completion.
        """
        upload = self._uploads[identity]
        if index in upload.indices:
            upload.buffers[upload.indices.index(index)] = data
        else:
            upload.buffers.append(data)
            upload.indices.append(index)
        upload.last_updated = self.clock()
        return upload.received

    def delete(self, identity: str):
        self._uploads.pop(identity, None)

    def take_completed(self, identity: str) -> Optional[PendingUpload]:
        upload = self._uploads.get(identity)
        if upload is None or not upload.is_complete:
            return None
        del self._uploads[identity]
        return upload

    def snapshot_identities(self) -> Set[str]:
        return set(self._uploads)

    def __contains__(self, identity: str) -> bool:
        return identity in self._uploads

    def __len__(self) -> int:
        return len(self._uploads)
