"""
Configuration management for the order management backend
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Order Management System"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = False

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./oms.db"

    # Authentication (single shared staff password)
    app_password: str = ""
    auth_cookie_name: str = "oms_authenticated"
    auth_cookie_max_age_days: int = 30
    cron_secret: str = ""
    admin_secret: str = ""

    # SendCloud
    sendcloud_api_key: str = ""
    sendcloud_api_secret: str = ""
    sendcloud_base_url: str = "https://panel.sendcloud.sc/api"
    sendcloud_return_product_code: str = "ups:standard/return"
    sendcloud_return_contract_id: Optional[int] = None

    # Warehouse address (destination of return labels)
    warehouse_name: str = "Lechapelain"
    warehouse_company: str = "iMapper AMAMI"
    warehouse_address_line1: str = "Rue Ella Maillart"
    warehouse_house_number: str = "7"
    warehouse_city: str = "Vannes"
    warehouse_postal_code: str = "56000"
    warehouse_country: str = "FR"
    warehouse_phone: str = "+33679044283"
    warehouse_email: str = "shipment@imapper.tech"

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_min_order_amount: float = 300.0  # in major currency units (EUR)

    # HubSpot
    hubspot_api_key: str = ""
    hubspot_base_url: str = "https://api.hubapi.com"

    # Delivery status polling
    delivery_status_batch_limit: int = 50
    delivery_status_recheck_hours: int = 12
    delivery_status_cron: str = "0 3 * * *"
    enable_scheduler: bool = True

    # Shipping methods cache
    shipping_methods_cache_ttl: int = 300

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
