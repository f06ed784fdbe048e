from shared.helper.HelperConfig import HelperConfig
from shared.models.indexing import IndexSourceType
from services.indexing.normalizer.NormalizerInterface import NormalizerInterface


class NormalizerManager:
    """
    Registry of normalizers keyed by source type.

    For every IndexSourceType the manager imports
    services.indexing.normalizer.<type>.Normalizer<Type>. Source types
    without an implementation stay unregistered; the worker raises
    NormalizerNotFoundError for their jobs and drops them.
    """

    def __init__(self, helper_config: HelperConfig, max_chars: int):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._max_chars = max_chars
        self._normalizers: dict[IndexSourceType, NormalizerInterface] = {}
        for source_type in IndexSourceType:
            normalizer = self._load(source_type)
            if normalizer is not None:
                self.register(normalizer)

    def _load(self, source_type: IndexSourceType) -> NormalizerInterface | None:
        engine = source_type.value.lower().capitalize()
        className = f"Normalizer{engine}"
        try:
            module = __import__(
                f"services.indexing.normalizer.{engine.lower()}.{className}",
                fromlist=[className],
            )
            normalizer_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            self.logging.warning("No normalizer available for sourceType=%s: %s", source_type.value, e)
            return None
        return normalizer_class(helper_config=self.helper_config, max_chars=self._max_chars)

    def register(self, normalizer: NormalizerInterface) -> None:
        source_type = normalizer.source_type()
        if source_type in self._normalizers:
            raise ValueError(f"Duplicate normalizer for sourceType={source_type.value}")
        self._normalizers[source_type] = normalizer
        self.logging.debug("Registered normalizer %s for sourceType=%s", normalizer.__class__.__name__, source_type.value)

    def get(self, source_type: IndexSourceType) -> NormalizerInterface | None:
        return self._normalizers.get(source_type)
