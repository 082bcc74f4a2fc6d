"""
Amazon Bedrock embedding client with retry logic.

Turns memory content and search queries into vectors. Titan and Cohere
embedding models are supported.
"""

import json
import random
import time
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockEmbedConfig
from .logging_config import get_logger

logger = get_logger(__name__)

COHERE_DIMENSION = 1024


class BedrockEmbedError(Exception):
    """Custom exception for Bedrock embedding errors."""
    pass


class BedrockEmbed:
    """Amazon Bedrock embedding client with retry logic and error handling."""

    def __init__(self, config: BedrockEmbedConfig):
        """
        Initialize Bedrock embedding client.

        Args:
            config: BedrockEmbedConfig instance with connection parameters
        """
        self.config = config
        self.model_id = config.model_id
        self.dimension = config.dimension

        if self._is_cohere and self.dimension != COHERE_DIMENSION:
            raise BedrockEmbedError(f'Cohere models only support {COHERE_DIMENSION} dimensions, got {self.dimension}')
        if not self._is_titan and not self._is_cohere:
            raise BedrockEmbedError(f'Unsupported embedding model: {self.model_id}')

        self.bedrock = boto3.client(service_name='bedrock-runtime', region_name=config.region)

        logger.info(f'Initialized Bedrock Embed client with model: {self.model_id}')

    @property
    def _is_titan(self) -> bool:
        return 'titan' in self.model_id.lower()

    @property
    def _is_cohere(self) -> bool:
        return 'cohere' in self.model_id.lower()

    def _invoke(self, data: dict) -> dict:
        """
        Call the model, retrying throttling and transport errors with backoff.

        Raises:
            BedrockEmbedError: If all retry attempts fail
        """
        body = json.dumps(data)

        for attempt in range(self.config.retry_attempts):
            try:
                response = self.bedrock.invoke_model(body=body,
                                                     modelId=self.model_id,
                                                     accept='application/json',
                                                     contentType='application/json')
                return json.loads(response.get('body').read())

            except (ClientError, BotoCoreError) as e:
                logger.warning(f'Bedrock Embed attempt {attempt + 1}/{self.config.retry_attempts} failed: {e}')

                if attempt < self.config.retry_attempts - 1:
                    # Exponential backoff with jitter
                    time.sleep(self.config.retry_delay * (2**attempt) + random.uniform(0, 1))
                else:
                    raise BedrockEmbedError(f'Bedrock Embed failed after {self.config.retry_attempts} attempts: {e}')

        raise BedrockEmbedError(f'Bedrock Embed failed after {self.config.retry_attempts} attempts')

    def _embed(self, text: str, input_type: str) -> Optional[List[float]]:
        if not text or not text.strip():
            logger.warning(f'Empty text provided for {input_type} embedding')
            return None

        text = text[:self.config.max_input_chars]

        try:
            if self._is_titan:
                response = self._invoke({'inputText': text, 'dimensions': self.dimension})
                embedding = response.get('embedding')
            else:
                response = self._invoke({'input_type': input_type, 'texts': [text]})
                embeddings = response.get('embeddings') or [None]
                embedding = embeddings[0]
        except BedrockEmbedError:
            raise
        except Exception as e:
            logger.error(f'Error generating {input_type} embedding: {e}')
            raise BedrockEmbedError(f'Embedding failed: {e}')

        if not embedding:
            raise BedrockEmbedError(f'Model {self.model_id} returned no embedding')
        return embedding

    def embed_document(self, text: str) -> Optional[List[float]]:
        """
        Embed memory content for storage.

        Args:
            text: Content to embed, truncated to the configured maximum

        Returns:
            Embedding vector, or None for empty text

        Raises:
            BedrockEmbedError: If embedding generation fails
        """
        return self._embed(text, 'search_document')

    def embed_query(self, text: str) -> Optional[List[float]]:
        """
        Embed a search query.

        Args:
            text: Query text

        Returns:
            Embedding vector, or None for empty text

        Raises:
            BedrockEmbedError: If embedding generation fails
        """
        return self._embed(text, 'search_query')

    def health_check(self) -> bool:
        """
        Perform a health check on the Bedrock embedding service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            embedding = self.embed_document('health check')
            return embedding is not None and len(embedding) == self.dimension

        except Exception as e:
            logger.error(f'Bedrock Embed health check failed: {e}')
            return False
