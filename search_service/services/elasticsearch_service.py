# search_service/services/elasticsearch_service.py

import os
from elasticsearch import AsyncElasticsearch

# ES_HOST should point at the Elasticsearch cluster,
# e.g. "http://elasticsearch-node:9200" or default to localhost.
ES_HOST = os.getenv("ES_HOST", "http://localhost:9200")
INDEX_NAME = os.getenv("ES_INDEX", "campus-messages")

MAPPINGS = {
    "properties": {
        "conversation_id": {"type": "keyword"},
        "id":              {"type": "keyword"},
        "sender_id":       {"type": "keyword"},
        "receiver_id":     {"type": "keyword"},
        "text":            {"type": "text"},
        "timestamp":       {"type": "date"},
    }
}

# Async client for indexing & searching
es = AsyncElasticsearch(hosts=[ES_HOST])


def build_document(conversation_id: str, message: dict) -> dict:
    """
    Flatten one direct message into the indexed document.
    Expects `message` to have at least "id", "text" and "timestamp".
    """
    return {
        "conversation_id": conversation_id,
        "id":              message["id"],
        "text":            message["text"],
        "timestamp":       message["timestamp"],
        "sender_id":       message.get("sender_id"),
        "receiver_id":     message.get("receiver_id"),
    }


def build_search_query(conversation_id: str, query: str) -> dict:
    return {
        "bool": {
            "filter": [{"term": {"conversation_id": conversation_id}}],
            "must": [{"match": {"text": {"query": query, "fuzziness": "AUTO"}}}],
        }
    }


async def ensure_index():
    if not await es.indices.exists(index=INDEX_NAME):
        await es.indices.create(index=INDEX_NAME, mappings=MAPPINGS)


async def index_message(conversation_id: str, message: dict):
    """
    Index (or re-index, after an edit) a single message.
    """
    doc = build_document(conversation_id, message)
    await es.index(index=INDEX_NAME, id=doc["id"], document=doc)


async def search_messages(conversation_id: str, query: str):
    """
    Search for `query` within the messages of one conversation.
    Returns a list of source-documents, oldest first.
    """
    resp = await es.search(
        index=INDEX_NAME,
        query=build_search_query(conversation_id, query),
        sort=[{"timestamp": {"order": "asc"}}],
    )
    hits = resp.get("hits", {}).get("hits", [])
    return [hit["_source"] for hit in hits]


async def delete_conversation(conversation_id: str) -> int:
    resp = await es.delete_by_query(
        index=INDEX_NAME,
        query={"term": {"conversation_id": conversation_id}},
    )
    return resp.get("deleted", 0)


async def delete_user_messages(user_id: str) -> int:
    resp = await es.delete_by_query(
        index=INDEX_NAME,
        query={
            "bool": {
                "should": [
                    {"term": {"sender_id": user_id}},
                    {"term": {"receiver_id": user_id}},
                ],
                "minimum_should_match": 1,
            }
        },
    )
    return resp.get("deleted", 0)
