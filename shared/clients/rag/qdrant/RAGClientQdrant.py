import uuid

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.FilterExpression import FilterClause
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorRecord import ScoredVectorRecord, VectorRecord
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

RECORD_ID_FIELD = "record_id"
TEXT_FIELD = "text"


def make_point_id(record_id: str) -> str:
    """Deterministic UUID5 point id for a logical record id.

    Qdrant only accepts unsigned integers or UUIDs as point ids, so the
    logical id is hashed and also kept in the payload.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_OID, record_id))


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig, embed_client: EmbedClientInterface):
        super().__init__(helper_config=helper_config, embed_client=embed_client)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_scroll(self) -> str:
        return f"/collections/{self._collection_name}/points/scroll"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_count(self) -> str:
        return f"/collections/{self._collection_name}/points/count"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def build_point(self, record: VectorRecord, vector: list[float]) -> dict:
        payload = dict(record.metadata)
        payload[RECORD_ID_FIELD] = record.id
        payload[TEXT_FIELD] = record.text
        return {"id": make_point_id(record.id), "vector": vector, "payload": payload}

    def build_filter_conditions(self, clauses: list[FilterClause]) -> list[dict]:
        conditions = []
        for clause in clauses:
            if clause.operator == "==":
                conditions.append({"key": clause.field, "match": {"value": clause.value}})
            elif clause.operator == ">=":
                # strings are compared as RFC 3339 datetimes by qdrant
                conditions.append({"key": clause.field, "range": {"gte": clause.value}})
            else:
                raise ValueError(f"Unsupported filter operator '{clause.operator}' for qdrant.")
        return conditions

    def get_scroll_payload(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | int | None = None) -> dict:
        payload = {
            "filter": {"must": filters},
            "limit": limit,
            "with_payload": with_payload,
            "with_vector": with_vector,
        }
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_search_payload(self, vector: list[float], top_k: int, filters: list[dict]) -> dict:
        payload = {"vector": vector, "limit": top_k, "with_payload": True}
        if filters:
            payload["filter"] = {"must": filters}
        return payload

    def get_count_payload(self, filters: list[dict]) -> dict:
        return {"filter": {"must": filters}, "exact": True}

    def get_delete_payload(self, filters: list[dict]) -> dict:
        return {"filter": {"must": filters}}

    def get_delete_by_ids_payload(self, ids: list[str]) -> dict:
        return {"points": [make_point_id(record_id) for record_id in ids]}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_scroll_points(self, raw_response: dict) -> list[dict]:
        return (raw_response.get("result") or {}).get("points", [])

    def extract_next_page_offset(self, raw_response: dict) -> str | int | None:
        return (raw_response.get("result") or {}).get("next_page_offset")

    def extract_record_payload(self, point: dict) -> dict:
        return point.get("payload") or {}

    def extract_search_results(self, raw_response: dict) -> list[ScoredVectorRecord]:
        results = []
        for hit in raw_response.get("result", []) or []:
            payload = dict(hit.get("payload") or {})
            record_id = payload.pop(RECORD_ID_FIELD, str(hit.get("id")))
            text = payload.pop(TEXT_FIELD, "")
            results.append(ScoredVectorRecord(id=record_id, text=text, metadata=payload, score=hit.get("score", 0.0)))
        return results
