"""Failure taxonomy of the indexing pipeline.

Every error carries a stable code so log lines can be grepped and counted.
None of them ever reaches the code that triggered indexing; the job worker
catches and logs them at the job boundary.
"""


class IndexingError(Exception):
    code = "INDEXING_FAILED"

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"[{self.code}] {super().__str__()}"


class NormalizerNotFoundError(IndexingError):
    code = "NORMALIZER_NOT_FOUND"


class ChunkFailureError(IndexingError):
    code = "CHUNK_FAILED"


class IndexMutationError(IndexingError):
    """The vector store rejected an add or delete."""

    code = "VECTORIZE_FAILED"


class StateSaveError(IndexingError):
    """The indexing state could not be read or written."""

    code = "STATE_FAILED"


class ConcurrentStateModificationError(StateSaveError):
    """Another writer updated the same source key between read and save."""

    code = "STATE_CONFLICT"
