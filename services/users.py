from datetime import datetime, timezone
from typing import Optional, Dict, Any
from bson import ObjectId
from bson.errors import InvalidId

import db.mongo as mongo


async def find_by_email_or_username(username_or_email: str) -> Optional[Dict[str, Any]]:
    return await mongo.get_database()["users"].find_one({
        "$or": [
            {"email": username_or_email.lower()},
            {"username": username_or_email},
        ]
    })


async def create_user(data: Dict[str, Any]) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    doc = {
        "username": data["username"],
        "email": data["email"].lower(),
        "hashed_password": data["hashed_password"],
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    res = await mongo.get_database()["users"].insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


async def get_user_by_id(user_id: str) -> Optional[Dict[str, Any]]:
    try:
        oid = ObjectId(user_id)
    except (InvalidId, TypeError):
        return None
    return await mongo.get_database()["users"].find_one({"_id": oid})
