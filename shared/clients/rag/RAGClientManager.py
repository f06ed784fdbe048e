from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager:
    """
    Resolves the RAG client for the engine named in RAG_ENGINE.
    """

    def __init__(self, helper_config: HelperConfig, embed_client: EmbedClientInterface):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the RAG engine from ENV configuration.

        Returns:
            str: The capitalized engine name, e.g. "Qdrant".

        Raises:
            ValueError: If no RAG engine is configured.
        """
        engine = self.helper_config.get_string_val("RAG_ENGINE", default="qdrant")
        if not engine.strip():
            raise ValueError("No RAG engine specified in configuration.")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> RAGClientInterface:
        """
        Imports shared.clients.rag.<engine>.RAGClient<Engine> and instantiates it.

        Raises:
            ValueError: If the engine has no client implementation.
        """
        engine = self._get_engine_from_env()
        className = f"RAGClient{engine}"
        try:
            module = __import__(
                f"shared.clients.rag.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported RAG engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config, embed_client=self._embed_client)
        self.logging.debug("Instantiated RAG client for engine: %s", engine)
        return client

    def get_client(self) -> RAGClientInterface:
        """
        Returns the instantiated RAG client.
        """
        return self.client
