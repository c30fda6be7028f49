from campus_assistant.stores.base import OTPRecord, OTPStore, StoreError
from campus_assistant.stores.redis import RedisOTPStore
from campus_assistant.stores.sql import SQLAlchemyOTPStore

__all__ = [
    "OTPRecord",
    "OTPStore",
    "RedisOTPStore",
    "SQLAlchemyOTPStore",
    "StoreError",
]
