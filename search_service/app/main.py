import logging

from fastapi import FastAPI, Body, Query, HTTPException
from services.elasticsearch_service import (
    delete_conversation,
    delete_user_messages,
    ensure_index,
    index_message,
    search_messages,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="CampusConnect Search Service",
    description="API for indexing and searching direct messages in Elasticsearch"
)

@app.on_event("startup")
async def create_index():
    await ensure_index()

@app.post("/index")
async def index_endpoint(
    conversation_id: str = Body(..., embed=True),
    message: dict = Body(..., embed=True)
):
    """
    POST /index
    Body JSON: { "conversation_id": "...", "message": { "id": "...", "text": "...", ... } }
    """
    try:
        await index_message(conversation_id, message)
        return {"status": "indexed"}
    except KeyError as e:
        raise HTTPException(status_code=400, detail=f"message is missing {e}")
    except Exception as e:
        logger.exception("Indexing failed for %s", conversation_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/search")
async def search_endpoint(
    conversation_id: str = Query(..., description="Canonical key of the conversation"),
    q: str = Query(..., description="Search query string")
):
    """
    GET /search?conversation_id=...&q=...
    Returns list of matching messages.
    """
    try:
        return await search_messages(conversation_id, q)
    except Exception as e:
        logger.exception("Search failed for %s", conversation_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/conversations/{conversation_id}")
async def delete_conversation_endpoint(conversation_id: str):
    try:
        return {"deleted": await delete_conversation(conversation_id)}
    except Exception as e:
        logger.exception("Delete failed for %s", conversation_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/users/{user_id}")
async def delete_user_endpoint(user_id: str):
    try:
        return {"deleted": await delete_user_messages(user_id)}
    except Exception as e:
        logger.exception("Delete failed for user %s", user_id)
        raise HTTPException(status_code=500, detail=str(e))
