from pydantic_settings import BaseSettings
from functools import lru_cache
from pydantic import Field

from firewire.schemas.circuit import CircuitParameters


class Settings(BaseSettings):
    app_name: str = "FireWire"
    debug: bool = False
    env: str = "development"
    log_level: str = "INFO"

    # PostgreSQL
    postgres_user: str = "firewire"
    postgres_password: str = "changeme"
    postgres_db: str = "firewire"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    database_url_override: str | None = Field(default=None, alias="DATABASE_URL")
    auto_create_tables: bool = False

    # Circuit defaults (fire alarm NAC, 24V nominal)
    default_system_voltage: float = 29.0
    default_min_voltage: float = 16.0
    default_max_load: float = 3.0
    default_reserved_percent: int = Field(default=20, ge=0, lt=100)
    default_wire_gauge: str = "16 AWG"
    default_supply_distance: float = 50.0
    default_routing_overhead: float = 1.15

    # Validation
    max_voltage_drop_percent: float = 10.0
    max_devices_per_circuit: int = 250

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def async_database_url(self) -> str:
        # Swap postgresql:// for postgresql+asyncpg:// for async driver
        return self.database_url.replace("postgresql://", "postgresql+asyncpg://")

    def circuit_parameters(self) -> CircuitParameters:
        return CircuitParameters.for_gauge(
            self.default_wire_gauge,
            system_voltage=self.default_system_voltage,
            min_voltage=self.default_min_voltage,
            max_load=self.default_max_load,
            safety_percent=self.default_reserved_percent / 100.0,
            supply_distance=self.default_supply_distance,
            routing_overhead=self.default_routing_overhead,
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
