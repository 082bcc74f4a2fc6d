"""
Configuration management for AWS services and engine settings.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class BedrockEmbedConfig:
    """Configuration for Amazon Bedrock Embed service."""
    region: str
    model_id: str
    dimension: int
    retry_attempts: int
    retry_delay: float
    max_input_chars: int


@dataclass
class NeptuneConfig:
    """Configuration for Amazon Neptune graph database."""
    endpoint: str
    port: int
    region: str


@dataclass
class OpenSearchConfig:
    """Configuration for OpenSearch."""
    endpoint: str
    port: int
    region: str
    index_name: str
    dimension: int
    timeout: int


@dataclass
class GraphConfig:
    """Configuration for graph assembly."""
    page_size: int


@dataclass
class SearchConfig:
    """Configuration for memory search."""
    default_limit: int
    default_similarity_threshold: float
    vector_weight: float
    candidate_multiplier: int


@dataclass
class DetectionConfig:
    """Configuration for connection detection."""
    insert_batch_size: int


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_embed: BedrockEmbedConfig
    neptune: NeptuneConfig
    opensearch: OpenSearchConfig
    graph: GraphConfig
    search: SearchConfig
    detection: DetectionConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock Embed configuration
    bedrock_embed_config = BedrockEmbedConfig(region=os.getenv('BEDROCK_EMBED_AWS_REGION', 'us-east-1'),
                                              model_id=os.getenv('BEDROCK_EMBED_MODEL_ID', 'amazon.titan-embed-text-v2:0'),
                                              dimension=int(os.getenv('BEDROCK_EMBED_DIMENSION', '1024')),
                                              retry_attempts=int(os.getenv('BEDROCK_EMBED_RETRY_ATTEMPTS', '3')),
                                              retry_delay=float(os.getenv('BEDROCK_EMBED_RETRY_DELAY', '1.0')),
                                              max_input_chars=int(os.getenv('BEDROCK_EMBED_MAX_INPUT_CHARS', '8000')))

    # Neptune configuration
    neptune_config = NeptuneConfig(endpoint=os.getenv('NEPTUNE_ENDPOINT', 'localhost'),
                                   port=int(os.getenv('NEPTUNE_PORT', '8182')),
                                   region=os.getenv('NEPTUNE_AWS_REGION', 'us-east-1'))

    # Memory index configuration
    opensearch_config = OpenSearchConfig(endpoint=os.getenv('OPENSEARCH_ENDPOINT', 'localhost'),
                                         port=int(os.getenv('OPENSEARCH_PORT', '443')),
                                         region=os.getenv('OPENSEARCH_AWS_REGION', 'us-east-1'),
                                         index_name=os.getenv('OPENSEARCH_INDEX', 'user_memories'),
                                         dimension=int(os.getenv('OPENSEARCH_DIMENSION', '1024')),
                                         timeout=int(os.getenv('OPENSEARCH_TIMEOUT', '30')))

    graph_config = GraphConfig(page_size=int(os.getenv('GRAPH_PAGE_SIZE', '100')))

    search_config = SearchConfig(default_limit=int(os.getenv('SEARCH_DEFAULT_LIMIT', '20')),
                                 default_similarity_threshold=float(os.getenv('SEARCH_DEFAULT_SIMILARITY_THRESHOLD', '0.7')),
                                 vector_weight=float(os.getenv('SEARCH_VECTOR_WEIGHT', '0.5')),
                                 candidate_multiplier=int(os.getenv('SEARCH_CANDIDATE_MULTIPLIER', '2')))

    detection_config = DetectionConfig(insert_batch_size=int(os.getenv('DETECTION_INSERT_BATCH_SIZE', '50')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'http'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_embed=bedrock_embed_config,
                     neptune=neptune_config,
                     opensearch=opensearch_config,
                     graph=graph_config,
                     search=search_config,
                     detection=detection_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
