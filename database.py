import os
import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger("savra")

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "savra")

_client: Optional[MongoClient] = None
db: Optional[Database] = None

if DATABASE_URL:
    # MongoClient connects lazily, so import never blocks on the server
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]
    logger.info("Using MongoDB database %s", DATABASE_NAME)
