"""Tool repository: read-only lookups into the Tool catalog."""
from typing import List, Dict, Any
from motor.motor_asyncio import AsyncIOMotorDatabase


class ToolRepository:
    """Repository for the tool lookups the news pipeline needs."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.tools

    async def list_tools(self) -> List[Dict[str, Any]]:
        """Get id, slug and name of every tool."""
        cursor = self.collection.find({}, {"_id": 1, "slug": 1, "name": 1})
        return await cursor.to_list(length=None)
