# dinkassa_sync/core/config.py

import os
from functools import lru_cache
from typing import Annotated
from pydantic import ConfigDict, BeforeValidator
from pydantic_settings import BaseSettings


def _parse_yes_no(value):
    # Options stored by the storefront use 'yes'/'no' rather than booleans
    if isinstance(value, str) and value.strip().lower() in ("yes", "no"):
        return value.strip().lower() == "yes"
    return value


class Settings(BaseSettings):
    """
    Worker settings.
    Loads values from environment variables (.env file)
    """
    # Local store
    DATABASE_URL: str = ""

    # Dinkassa.se API
    DINKASSA_API_URL: str = "https://www.dinkassa.se/api"
    MACHINE_ID: str = ""
    MACHINE_KEY: str = ""
    INTEGRATOR_ID: str = ""

    CONNECT_TIMEOUT: float = 10.0   # seconds to establish the connection
    REQUEST_TIMEOUT: float = 30.0   # seconds for the whole request

    # Audit trail of every dispatched event
    LOG_WC_EVENTS: Annotated[bool, BeforeValidator(_parse_yes_no)] = False

    # Metadata keys
    META_KEY_PREFIX: str = "wh_meta_"
    CATEGORY_PENDING_CRUD_KEY: str = "wh_meta_pending_crud"
    CATEGORY_ID_KEY: str = "wh_meta_cat_id"
    DELETED_ITEMS_TERM: str = "dinkassa-deleted-items"
    DELETED_ITEM_META_KEY: str = "meta_deleted_item"

    # Dispatcher
    STOCK_LOCK_NAME: str = "stock-quantity"
    DISPATCH_WORKERS: int = 1
    MARK_PENDING_ON_ERROR: bool = True
    STOCK_LOCK_TIMEOUT: float = 30.0

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def product_pending_crud_key(self) -> str:
        return f"{self.META_KEY_PREFIX}pending_crud"

    @property
    def quantity_change_key(self) -> str:
        return f"{self.META_KEY_PREFIX}quantity_change"

    def product_field_key(self, field_name: str) -> str:
        return f"{self.META_KEY_PREFIX}{field_name}"


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
