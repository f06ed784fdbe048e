from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    """Turns chunk and query texts into vectors for the RAG backend."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        prefix = self.get_client_type().upper()
        self.embed_distance = helper_config.get_string_val(f"{prefix}_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val(f"{prefix}_MODEL", default=None)
        self.embed_model_max_chars = helper_config.get_int_val(f"{prefix}_MODEL_MAX_CHARS", default=0, minimum=0)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "embed"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests (e.g. "/api/embed").

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    @abstractmethod
    def get_endpoint_model_details(self) -> str:
        """
        Returns the endpoint path for model details requests (e.g. "/api/show").

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    @abstractmethod
    def get_model_details_payload(self) -> dict:
        pass

    ##########################################
    ############# RESPONSE PARSER ############
    ##########################################

    @abstractmethod
    def extract_vector_size_from_model_info(self, model_info: dict) -> int:
        """
        Extracts the embedding vector size from the model details response.

        Raises:
            ValueError: If the vector size cannot be determined.
        """
        pass

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors, in input order, from a raw embedding response.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    def _fit_to_model(self, text: str) -> str:
        """Cut texts the model cannot take in one piece. 0 means no limit."""
        if self.embed_model_max_chars and len(text) > self.embed_model_max_chars:
            self.logging.debug(
                "Embedding input of %d chars cut to %d chars.", len(text), self.embed_model_max_chars
            )
            return text[: self.embed_model_max_chars]
        return text

    async def do_fetch_embedding_vector_size(self) -> tuple[int, str]:
        """
        Fetch the output vector dimension and distance metric of the configured embedding model.

        Returns:
            tuple[int, str]: Vector size and distance metric.

        Raises:
            Exception: If the backend cannot be reached or the dimension cannot be determined.
        """
        response = await self.do_request(
            method="POST",
            json=self.get_model_details_payload(),
            endpoint=self.get_endpoint_model_details(),
            raise_on_error=True,
        )
        vector_size = self.extract_vector_size_from_model_info(model_info=response.json())
        return vector_size, self.embed_distance

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Embed one or more texts.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            Exception: If the HTTP request fails.
            ValueError: If the response does not contain valid embeddings.
        """
        texts = [texts] if isinstance(texts, str) else texts
        if not texts:
            return []
        body = self.get_embed_payload([self._fit_to_model(text) for text in texts])
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        if response.status_code != 200:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            raise Exception("Embedding request failed with status %d." % response.status_code)
        return self.extract_embeddings_from_response(response.json())

