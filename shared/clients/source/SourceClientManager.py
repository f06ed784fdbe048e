from shared.helper.HelperConfig import HelperConfig
from shared.clients.source.SourceClientInterface import SourceClientInterface


class SourceClientManager:
    """
    Resolves the optional source client named in SOURCE_ENGINE.

    Without SOURCE_ENGINE the service runs without a source client: indexing
    through the read hook and queries keep working, webhook and bulk load
    triggers are skipped.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _initialize_client(self) -> SourceClientInterface | None:
        """
        Imports shared.clients.source.<engine>.SourceClient<Engine> and instantiates it.

        Raises:
            ValueError: If SOURCE_ENGINE names an engine without implementation.
        """
        engine = self.helper_config.get_string_val("SOURCE_ENGINE", default="")
        if not engine:
            self.logging.warning("No SOURCE_ENGINE configured. Webhook and bulk load indexing are disabled.")
            return None
        engine = engine.strip().lower().capitalize()
        className = f"SourceClient{engine}"
        try:
            module = __import__(
                f"shared.clients.source.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported source engine specified: '{engine}'. Error: {e}")
        self.logging.debug("Instantiated source client for engine: %s", engine)
        return client_class(helper_config=self.helper_config)

    def get_client(self) -> SourceClientInterface | None:
        return self.client
