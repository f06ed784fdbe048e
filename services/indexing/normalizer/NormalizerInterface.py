from abc import ABC, abstractmethod

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import MIN_MAX_NORMALIZED_CHARS
from shared.models.indexing import IndexJob, IndexSourceType


class NormalizerInterface(ABC):
    """Turns the payload of one source type into flat, line-oriented text.

    Implementations must be deterministic: the same job always yields the
    same text, since the text hash decides whether anything is re-indexed.
    They must not raise on missing or null sub-structures.
    """

    def __init__(self, helper_config: HelperConfig, max_chars: int) -> None:
        self.logging = helper_config.get_logger()
        self.max_chars = max(MIN_MAX_NORMALIZED_CHARS, max_chars)

    @abstractmethod
    def source_type(self) -> IndexSourceType:
        pass

    @abstractmethod
    def normalize(self, job: IndexJob) -> str:
        """
        Normalize the job payload.

        Args:
            job (IndexJob): The job to normalize.

        Returns:
            str: Normalized text, at most max_chars long. "" when there is nothing to index.
        """
        pass
