"""
MCP and HTTP interface using fastmcp.

Every operation is exposed twice: as an MCP tool taking keyword arguments and
as an HTTP/JSON route taking the camelCase request body.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from fastmcp import FastMCP
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse

from .models.requests import (AnalyticsRequest, AutoConnectRequest, GraphRequest, SaveMemoryRequest, SearchRequest,
                              ValidationError)
from .services.memory_management import MemoryManagementError, MemoryManagementService
from .utils.config import config
from .utils.health_check import get_system_info
from .utils.logging_config import get_logger

logger = get_logger(__name__)

mcp = FastMCP('Memory Graph')

_service: Optional[MemoryManagementService] = None


def get_service() -> MemoryManagementService:
    """Get the memory service, creating it on first use."""
    global _service
    if _service is None:
        _service = MemoryManagementService()
    return _service


def set_service(service: Optional[MemoryManagementService]) -> None:
    global _service
    _service = service


def error_body(error: str, details: Optional[str] = None) -> Dict[str, Any]:
    body = {'error': error}
    if details:
        body['details'] = details
    return body


def dispatch(operation: str, handler: Callable[[Dict[str, Any]], Dict[str, Any]], payload: Any) -> Tuple[int, Dict[str, Any]]:
    """Run an operation and map its outcome to a status code and JSON body.

    Validation failures are 400; store and embedding failures are 500 with the
    underlying message in ``details``.
    """
    try:
        return 200, handler(payload)
    except ValidationError as e:
        logger.warning(f'Invalid {operation} request: {e}')
        return 400, error_body(str(e))
    except MemoryManagementError as e:
        logger.error(f'{operation} failed: {e}')
        return 500, error_body(f'Failed to {operation}', str(e))
    except Exception as e:
        logger.error(f'Unexpected error in {operation}: {e}')
        return 500, error_body(f'Failed to {operation}', str(e))


def handle_auto_connect(payload: Any) -> Dict[str, Any]:
    request = AutoConnectRequest.from_dict(payload)
    return get_service().auto_connect(request).to_dict()


def handle_graph(payload: Any) -> Dict[str, Any]:
    request = GraphRequest.from_dict(payload)
    return get_service().graph(request).to_dict()


def handle_search(payload: Any) -> Dict[str, Any]:
    request = SearchRequest.from_dict(payload)
    results = [result.to_dict() for result in get_service().search(request)]
    return {'query': request.query, 'results': results, 'count': len(results)}


def handle_analytics(payload: Any) -> Dict[str, Any]:
    request = AnalyticsRequest.from_dict(payload)
    return get_service().analytics(request).to_dict()


def handle_save(payload: Any) -> Dict[str, Any]:
    request = SaveMemoryRequest.from_dict(payload)
    memory = get_service().save_memory(request)
    return {
        'memory': {
            'id': memory.id,
            'content': memory.content,
            'contentType': memory.content_type,
            'tags': memory.tags,
            'createdAt': memory.created_at.isoformat()
        }
    }


def handle_delete(payload: Any) -> Dict[str, Any]:
    payload = payload if isinstance(payload, dict) else {}
    deleted = get_service().delete_memory(payload.get('userId') or '', payload.get('memoryId') or '')
    return {'deleted': deleted}


def _run_tool(operation: str, handler: Callable[[Dict[str, Any]], Dict[str, Any]], payload: Dict[str, Any]) -> Dict[str, Any]:
    status, body = dispatch(operation, handler, payload)
    if status != 200:
        details = body.get('details')
        raise Exception(f"{body['error']}: {details}" if details else body['error'])
    return body


@mcp.tool()
def auto_connect_memories(user_id: str, memory_ids: Optional[List[str]] = None) -> Dict[str, Any]:
    """Detect and store connections between a user's memories.

    Args:
        user_id: User ID
        memory_ids: Memories to check (default: all of the user's memories)

    Returns:
        connectionsCreated and the new connections
    """
    return _run_tool('auto-connect memories', handle_auto_connect, {'userId': user_id, 'memoryIds': memory_ids})


@mcp.tool()
def get_memory_graph(user_id: str,
                     content_type: Optional[str] = None,
                     date_from: Optional[str] = None,
                     date_to: Optional[str] = None) -> Dict[str, Any]:
    """Get a user's memories as graph nodes and links.

    Args:
        user_id: User ID
        content_type: Only memories of this type
        date_from: ISO-8601 lower bound on creation time
        date_to: ISO-8601 upper bound on creation time
    """
    filters = {'contentType': content_type, 'dateFrom': date_from, 'dateTo': date_to}
    return _run_tool('fetch memory graph', handle_graph, {'userId': user_id, 'filters': filters})


@mcp.tool()
def search_memories(user_id: str,
                    query: str,
                    content_type: Optional[str] = None,
                    limit: int = 20,
                    similarity_threshold: float = 0.7) -> Dict[str, Any]:
    """Search a user's memories by meaning and keywords.

    Args:
        user_id: User ID
        query: Natural language query
        content_type: Only memories of this type
        limit: Maximum number of results to return (default: 20)
        similarity_threshold: Minimum semantic similarity (default: 0.7)
    """
    payload = {
        'userId': user_id,
        'query': query,
        'filters': {
            'contentType': content_type
        },
        'limit': limit,
        'similarityThreshold': similarity_threshold
    }
    return _run_tool('search memories', handle_search, payload)


@mcp.tool()
def get_memory_analytics(user_id: str) -> Dict[str, Any]:
    """Get usage statistics for a user's memories."""
    return _run_tool('calculate analytics', handle_analytics, {'userId': user_id})


@mcp.tool()
def save_memory(user_id: str,
                content: str,
                content_type: str = 'manual',
                tags: Optional[List[str]] = None,
                title: Optional[str] = None) -> Dict[str, Any]:
    """Save a new memory.

    Args:
        user_id: User ID
        content: Memory text
        content_type: research, video, creative, conversation or manual
        tags: Topic tags
        title: Display title (default: start of the content)
    """
    payload = {'userId': user_id, 'content': content, 'contentType': content_type, 'tags': tags or [], 'title': title}
    return _run_tool('save memory', handle_save, payload)


@mcp.tool()
def delete_memory(user_id: str, memory_id: str) -> Dict[str, Any]:
    """Delete a memory and its connections."""
    return _run_tool('delete memory', handle_delete, {'userId': user_id, 'memoryId': memory_id})


async def _read_json(request: Request) -> Any:
    body = await request.body()
    if not body:
        return {}
    try:
        return await request.json()
    except ValueError:
        raise ValidationError('Request body must be valid JSON')


def _route(operation: str, handler: Callable[[Dict[str, Any]], Dict[str, Any]]):

    async def endpoint(request: Request) -> JSONResponse:
        if request.method == 'GET':
            payload = dict(request.query_params)
        else:
            try:
                payload = await _read_json(request)
            except ValidationError as e:
                return JSONResponse(error_body(str(e)), status_code=400)
        status, body = await run_in_threadpool(dispatch, operation, handler, payload)
        return JSONResponse(body, status_code=status)

    return endpoint


mcp.custom_route('/api/memory-auto-connect', methods=['POST'])(_route('auto-connect memories', handle_auto_connect))
mcp.custom_route('/api/memory-graph', methods=['POST'])(_route('fetch memory graph', handle_graph))
mcp.custom_route('/api/memory-search', methods=['POST'])(_route('search memories', handle_search))
mcp.custom_route('/api/memory-analytics', methods=['GET'])(_route('calculate analytics', handle_analytics))
mcp.custom_route('/api/memory-save', methods=['POST'])(_route('save memory', handle_save))
mcp.custom_route('/api/memory-delete', methods=['POST'])(_route('delete memory', handle_delete))


@mcp.custom_route('/health', methods=['GET'])
async def health(request: Request) -> JSONResponse:
    info = await run_in_threadpool(get_system_info)
    healthy = all(component.get('healthy', False) for component in info['health_status'].values())
    return JSONResponse({'healthy': healthy, **info}, status_code=200 if healthy else 503)


def main() -> None:
    if config.mcp.transport == 'stdio':
        mcp.run(transport='stdio')
    else:
        mcp.run(transport=config.mcp.transport, host=config.mcp.host, port=config.mcp.port)


if __name__ == '__main__':
    main()
