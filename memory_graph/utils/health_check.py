"""
Health check utilities for the engine's external collaborators.
"""

from typing import Any, Callable, Dict

from .bedrock_embed import BedrockEmbed
from .config import config
from .logging_config import get_logger
from .neptune_client import NeptuneClient
from .opensearch_client import OpenSearchClient

logger = get_logger(__name__)


def _component_status(service: str, check: Callable[[], bool], **details: Any) -> Dict[str, Any]:
    try:
        return {'healthy': check(), 'service': service, **details}
    except Exception as e:
        return {'healthy': False, 'service': service, 'error': str(e)}


def get_health_status() -> Dict[str, Any]:
    """Get detailed health status of all components.

    Returns:
        Dictionary with health status of each component
    """
    return {
        'bedrock_embed':
        _component_status('Amazon Bedrock Embed',
                          lambda: BedrockEmbed(config.bedrock_embed).health_check(),
                          model=config.bedrock_embed.model_id),
        'neptune':
        _component_status('Amazon Neptune', lambda: NeptuneClient(config.neptune).health_check(), endpoint=config.neptune.endpoint),
        'opensearch':
        _component_status('Amazon OpenSearch',
                          lambda: OpenSearchClient(config.opensearch).health_check(),
                          endpoint=config.opensearch.endpoint)
    }


def get_system_info() -> Dict[str, Any]:
    """Get system information and configuration.

    Returns:
        Dictionary with system information
    """
    return {
        'service_name': 'MemoryGraph',
        'version': '1.0.0',
        'configuration': {
            'bedrock_embed_model': config.bedrock_embed.model_id,
            'memory_index': config.opensearch.index_name,
            'graph_page_size': config.graph.page_size,
            'aws_region': config.bedrock_embed.region
        },
        'health_status': get_health_status()
    }
