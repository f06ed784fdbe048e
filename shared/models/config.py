from pydantic import BaseModel, Field

from shared.helper.HelperConfig import HelperConfig

MIN_MAX_NORMALIZED_CHARS = 10_000
DEFAULT_STATE_DATABASE_URL = "sqlite+aiosqlite:///./indexing_state.db"


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required for a env setting.

    Attributes:
        env_key (str): The key/name of the environment variable to read.
        val_type (str): The expected type of the value. Supported types are "string", "number", "bool", and "list".
        default (str | int | bool | list | None): Optional default. If None, the variable is required.
    """

    env_key: str
    val_type: str
    default: str | int | bool | list | None = None


class IndexingSettings(BaseModel):
    """Tunables of the indexing pipeline.

    Attributes:
        enabled: Master switch. When False every published job is dropped.
        chunk_size: Target chunk length in characters.
        chunk_overlap: Characters shared by two consecutive chunks.
        max_normalized_chars: Upper bound of the normalized text per document.
        executor_core_pool_size: Resident worker tasks.
        executor_max_pool_size: Worker ceiling while a backlog exists.
        executor_queue_capacity: Pending jobs before new ones are dropped.
        reconcile_interval_seconds: Period of the verify-and-repair sweep, 0 disables it.
        state_database_url: SQLAlchemy async URL of the indexing state store.
    """

    enabled: bool = True
    chunk_size: int = Field(default=1200, ge=1)
    chunk_overlap: int = Field(default=200, ge=0)
    max_normalized_chars: int = Field(default=120_000, ge=MIN_MAX_NORMALIZED_CHARS)
    executor_core_pool_size: int = Field(default=2, ge=1)
    executor_max_pool_size: int = Field(default=4, ge=1)
    executor_queue_capacity: int = Field(default=300, ge=1)
    reconcile_interval_seconds: int = Field(default=0, ge=0)
    state_database_url: str = DEFAULT_STATE_DATABASE_URL

    @classmethod
    def from_helper_config(cls, helper_config: HelperConfig) -> "IndexingSettings":
        """Build the settings from INDEXING_* environment variables.

        Args:
            helper_config (HelperConfig): The config helper to read from.

        Returns:
            IndexingSettings: The resolved settings.
        """
        core = helper_config.get_int_val("INDEXING_EXECUTOR_CORE_POOL_SIZE", default=2, minimum=1)
        return cls(
            enabled=helper_config.get_bool_val("INDEXING_ENABLED", default=True),
            chunk_size=helper_config.get_int_val("INDEXING_CHUNK_SIZE", default=1200, minimum=1),
            chunk_overlap=helper_config.get_int_val("INDEXING_CHUNK_OVERLAP", default=200, minimum=0),
            max_normalized_chars=helper_config.get_int_val(
                "INDEXING_MAX_NORMALIZED_CHARS", default=120_000, minimum=MIN_MAX_NORMALIZED_CHARS
            ),
            executor_core_pool_size=core,
            executor_max_pool_size=helper_config.get_int_val("INDEXING_EXECUTOR_MAX_POOL_SIZE", default=4, minimum=core),
            executor_queue_capacity=helper_config.get_int_val("INDEXING_EXECUTOR_QUEUE_CAPACITY", default=300, minimum=1),
            reconcile_interval_seconds=helper_config.get_int_val("INDEXING_RECONCILE_INTERVAL_SECONDS", default=0, minimum=0),
            state_database_url=helper_config.get_string_val("STATE_DATABASE_URL", default=DEFAULT_STATE_DATABASE_URL),
        )
