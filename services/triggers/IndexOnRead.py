"""Post-read hook that feeds successful reads into the index.

Decorate a read function (sync or async) and every successful call publishes
a copy of its result as an IndexJob::

    @index_on_read(
        dispatcher_getter=lambda: app.state.dispatcher,
        team_id="{team_id}",
        api_path="GET /api/v1/teams/{team_id}/notion/pages/{page_id}",
        resource_id="{page_id}",
    )
    async def get_page(team_id: int, page_id: str) -> dict: ...

Template fields are filled from the call's bound arguments. Callables receive
the bound arguments as a dict instead. The hook never changes the result and
never raises into the caller.
"""

import copy
import functools
import inspect
import logging
from typing import Any, Callable

from pydantic import BaseModel

from services.indexing.IndexJobDispatcher import IndexJobDispatcher
from shared.models.indexing import IndexJob, IndexSourceType

PAGINATION_PAGE_SIZE = "page_size"
PAGINATION_START_CURSOR = "start_cursor"

ArgResolver = str | Callable[[dict[str, Any]], Any] | None

logger = logging.getLogger("workspace_index")


def _resolve(resolver: ArgResolver, arguments: dict[str, Any]) -> Any:
    if resolver is None:
        return None
    if callable(resolver):
        return resolver(arguments)
    return resolver.format(**arguments)


def _snapshot(result: Any) -> Any:
    """Deep copy of a read result, None if the type is not indexable."""
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, (dict, list)):
        return copy.deepcopy(result)
    return None


def _present(arguments: dict[str, Any], name: str) -> bool:
    value = arguments.get(name)
    return value is not None and str(value).strip() != ""


def index_on_read(
    dispatcher_getter: Callable[[], IndexJobDispatcher | None],
    team_id: ArgResolver,
    api_path: ArgResolver,
    resource_id: ArgResolver = None,
    source_type: IndexSourceType = IndexSourceType.NOTION,
    condition: Callable[[dict[str, Any]], bool] | None = None,
    skip_if_page_size_present: bool = True,
    skip_if_start_cursor_present: bool = True,
) -> Callable:
    """Build the decorator.

    Args:
        dispatcher_getter: Returns the dispatcher at call time, None disables publishing.
        team_id: Template or callable resolving the tenant id.
        api_path: Template or callable resolving the logical read endpoint.
        resource_id: Template or callable resolving the resource id, optional.
        source_type: Normalizer selection for the published jobs.
        condition: Extra predicate on the bound arguments; False skips publishing.
        skip_if_page_size_present: Skip reads that pass a page_size.
        skip_if_start_cursor_present: Skip reads that pass a start_cursor.
    """

    def publish(signature: inspect.Signature, func_name: str, args: tuple, kwargs: dict, result: Any) -> None:
        try:
            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()
            arguments = dict(bound.arguments)

            if condition is not None and not condition(arguments):
                return
            if skip_if_page_size_present and _present(arguments, PAGINATION_PAGE_SIZE):
                return
            if skip_if_start_cursor_present and _present(arguments, PAGINATION_START_CURSOR):
                return

            payload = _snapshot(result)
            if payload is None:
                logger.debug("INDEX: %s returned %s, not indexable", func_name, type(result).__name__)
                return

            dispatcher = dispatcher_getter()
            if dispatcher is None:
                return
            dispatcher.publish(IndexJob(
                source_type=source_type,
                team_id=int(_resolve(team_id, arguments)),
                api_path=str(_resolve(api_path, arguments)),
                resource_id=_resolve(resource_id, arguments),
                payload=payload,
            ))
        except Exception as e:
            logger.warning("INDEX: post-read hook of %s failed: %s", func_name, e)

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                result = await func(*args, **kwargs)
                publish(signature, func.__qualname__, args, kwargs, result)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            result = func(*args, **kwargs)
            publish(signature, func.__qualname__, args, kwargs, result)
            return result

        return wrapper

    return decorator
