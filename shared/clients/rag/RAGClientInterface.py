from abc import abstractmethod
from typing import Any
import json
import math

import httpx
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag import FilterExpression
from shared.clients.rag.FilterExpression import FilterClause
from shared.clients.rag.models.ScrollPage import ScrollPage
from shared.clients.rag.models.VectorRecord import ScoredVectorRecord, VectorRecord
from shared.helper.HelperConfig import HelperConfig

UPSERT_BATCH_SIZE = 100  # max points per upsert call


class RAGClientInterface(ClientInterface):
    """Vector store contract used by the indexing pipeline.

    Records are addressed by their logical id (e.g. "<prefix>-3"); engines
    map that id onto whatever point id format they require. Texts are
    embedded through the injected embed client before they are stored.
    """

    def __init__(self, helper_config: HelperConfig, embed_client: EmbedClientInterface):
        super().__init__(helper_config=helper_config)
        self._embed_client = embed_client

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    def get_embed_client(self) -> EmbedClientInterface:
        return self._embed_client

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_scroll(self) -> str:
        """
        Returns the endpoint path for scroll requests.

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests.

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by id or filter.

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for similarity search requests.

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def build_point(self, record: VectorRecord, vector: list[float]) -> dict:
        """
        Builds the backend-specific point for one record.

        Args:
            record (VectorRecord): The record to store.
            vector (list[float]): The embedding of record.text.

        Returns:
            dict: The point as accepted by the upsert endpoint.
        """
        pass

    @abstractmethod
    def build_filter_conditions(self, clauses: list[FilterClause]) -> list[dict]:
        """
        Translates parsed filter clauses into backend-specific conditions, all of which must hold.

        Args:
            clauses (list[FilterClause]): Parsed clauses of a filter expression.

        Returns:
            list[dict]: Backend-specific conditions.
        """
        pass

    @abstractmethod
    def get_scroll_payload(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | int | None = None) -> dict:
        """
        Returns the payload for scroll requests to the RAG backend.

        Args:
            filters (list[dict]): Conditions that must all hold.
            with_payload (bool | list | dict): Whether to include the payload, or which fields.
            with_vector (bool | list): Whether to include the vector.
            limit (int | None): The maximum number of results to return.
            offset (str | int | None): Cursor returned by the previous page, None to start at the beginning.

        Returns:
            dict: The payload for the scroll request.
        """
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], top_k: int, filters: list[dict]) -> dict:
        pass

    @abstractmethod
    def get_count_payload(self, filters: list[dict]) -> dict:
        pass

    @abstractmethod
    def get_delete_payload(self, filters: list[dict]) -> dict:
        """
        Builds the payload for a filter-based delete.

        Args:
            filters (list[dict]): Conditions that must all hold for a point to be deleted.

        Returns:
            dict: The payload for the delete request.
        """
        pass

    @abstractmethod
    def get_delete_by_ids_payload(self, ids: list[str]) -> dict:
        """
        Builds the payload for deleting records by their logical id.

        Args:
            ids (list[str]): Logical record ids.

        Returns:
            dict: The payload for the delete request.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_scroll_points(self, raw_response: dict) -> list[dict]:
        """
        Extracts the points of a raw scroll response.
        """
        pass

    @abstractmethod
    def extract_next_page_offset(self, raw_response: dict) -> str | int | None:
        """
        Extracts the cursor of the next scroll page, None when this was the last page.
        """
        pass

    @abstractmethod
    def extract_search_results(self, raw_response: dict) -> list[ScoredVectorRecord]:
        pass

    @abstractmethod
    def extract_record_payload(self, point: dict) -> dict:
        """Returns the stored payload (metadata plus record id and text) of a scrolled point."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence(), raise_on_error=True)
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int = 768, distance: str = "Cosine") -> httpx.Response:
        """Create the collection in the rag backend.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.

        Returns:
            httpx.Response: The response from the create collection request.
        """
        return await self.do_request(
            method="PUT",
            json={"vectors": {"size": vector_size, "distance": distance}},
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True,
        )

    async def do_ensure_collection(self) -> None:
        """Create the collection sized for the embed model, unless it already exists."""
        if await self.do_existence_check():
            return
        vector_size, distance = await self._embed_client.do_fetch_embedding_vector_size()
        self.logging.info(
            "Creating %s collection (size=%d, distance=%s)...", self.get_engine_name(), vector_size, distance
        )
        await self.do_create_collection(vector_size=vector_size, distance=distance)

    async def do_upsert_points(self, points: list[dict[str, Any]]) -> httpx.Response:
        """Upsert raw points. Existing points with the same id are replaced.

        Args:
            points (list[dict[str, Any]]): Backend-specific points.

        Returns:
            httpx.Response: The response from the upsert request.
        """
        return await self.do_request(
            method="PUT",
            content=json.dumps({"points": points}),
            endpoint=self._get_endpoint_points(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_add(self, records: list[VectorRecord]) -> None:
        """Embed and upsert records. Records whose id already exists are overwritten.

        Args:
            records (list[VectorRecord]): Records to store.

        Raises:
            Exception: If embedding or the upsert request fails.
        """
        for batch_start in range(0, len(records), UPSERT_BATCH_SIZE):
            batch = records[batch_start: batch_start + UPSERT_BATCH_SIZE]
            vectors = await self._embed_client.do_embed(texts=[record.text for record in batch])
            if len(vectors) != len(batch):
                raise ValueError(f"Embed client returned {len(vectors)} vectors for {len(batch)} texts.")
            points = [self.build_point(record, vector) for record, vector in zip(batch, vectors)]
            await self.do_upsert_points(points)

    async def do_delete(self, ids: list[str]) -> None:
        """Delete records by logical id. Unknown ids are ignored by the backend.

        Args:
            ids (list[str]): Logical record ids.
        """
        if not ids:
            return
        await self.do_request(
            method="POST",
            content=json.dumps(self.get_delete_by_ids_payload(ids)),
            endpoint=self._get_endpoint_delete_points(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_delete_points_by_filter(self, filters: list[dict]) -> None:
        """Deletes all points matching every condition.

        Args:
            filters (list[dict]): Backend-specific conditions, e.g. from build_filter_conditions().
        """
        await self.do_request(
            method="POST",
            content=json.dumps(self.get_delete_payload(filters)),
            endpoint=self._get_endpoint_delete_points(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_similarity_search(self, query: str, top_k: int, filter_expression: str | None = None) -> list[ScoredVectorRecord]:
        """Return the top_k records most similar to the query.

        Args:
            query (str): Natural language query.
            top_k (int): Maximum number of results.
            filter_expression (str | None): Optional metadata filter, see FilterExpression.

        Returns:
            list[ScoredVectorRecord]: Results ordered by descending score.
        """
        vectors = await self._embed_client.do_embed(texts=query)
        conditions = self.build_filter_conditions(FilterExpression.parse(filter_expression))
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_search_payload(vectors[0], top_k, conditions)),
            endpoint=self._get_endpoint_search(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return self.extract_search_results(resp.json())

    async def do_scroll(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | int | None = None) -> ScrollPage:
        """Scroll a single page from the collection.

        To retrieve all matching points across an arbitrary number of pages use
        do_scroll_all() instead.

        Args:
            filters (list[dict]): Conditions that must all hold.
            with_payload (bool | list | dict): Whether to include the payload, or which fields.
            with_vector (bool | list): Whether to include the vector.
            limit (int | None): The maximum number of results to return per page.
            offset (str | int | None): Cursor from the previous page's next_page_offset.

        Returns:
            ScrollPage: The page, including next_page_offset when more pages exist.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_scroll_payload(filters, with_payload, with_vector, limit, offset)),
            endpoint=self._get_endpoint_scroll(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        raw_response = resp.json()
        return ScrollPage(
            points=self.extract_scroll_points(raw_response),
            next_page_offset=self.extract_next_page_offset(raw_response),
        )

    async def do_count(self, filters: list[dict]) -> int:
        """Count the points matching every condition.

        Args:
            filters (list[dict]): Conditions for the count request.

        Returns:
            int: Number of matching points.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_count_payload(filters)),
            endpoint=self._get_endpoint_count(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return resp.json().get("result", {}).get("count", 0)

    async def do_scroll_all(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, page_size: int = 1000) -> ScrollPage:
        """Scroll through ALL points matching the filter, paginating until the backend reports no next page.

        Returns:
            ScrollPage: All matching points. next_page_offset is always None.
        """
        all_points: list[dict] = []
        offset: str | int | None = None
        page = 1
        total_points = await self.do_count(filters)
        total_pages = math.ceil(total_points / page_size) if total_points > 0 else 1
        while True:
            page_result = await self.do_scroll(
                filters=filters,
                with_payload=with_payload,
                with_vector=with_vector,
                limit=page_size,
                offset=offset,
            )
            all_points.extend(page_result.points)
            self.logging.debug(
                "Fetched RAG points page %d of %d from %s, total points so far: %d of %d",
                page, total_pages, self.get_engine_name(), len(all_points), total_points,
            )
            offset = page_result.next_page_offset
            if offset is None:
                break
            page += 1
        return ScrollPage(points=all_points)
