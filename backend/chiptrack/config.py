from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    environment: str = "development"
    debug: bool = True
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # Wizard state persistence
    state_backend: str = "sql"  # sql | redis | memory
    storage_key: str = "productTrackingForm"
    state_ttl_seconds: int = 12 * 60 * 60  # one operator shift
    database_url: str = "sqlite+aiosqlite:///./chiptrack.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Ledger workbook (the /save endpoint appends here)
    ledger_path: str = "./data/consumption-sheet.xlsx"
    ledger_sheet: str = "Sheet1"

    # Submission target
    api_base: str = ""  # explicit override, e.g. http://ledger-host:3000
    page_origin: str = ""  # origin the operator front-end was served from
    api_fallback_port: int = 3000
    request_timeout_seconds: float = 10.0

    # Wizard behaviour
    redirect_delay_seconds: float = 3.0

    # Option sets offered by the form (comma separated)
    products: str = "Resin-X,Resin-Y,Nylon 6,Nylon 66"
    destinations: str = "Extruder 1,Extruder 2,Extruder 3,Blender,Regrind"
    purchased_options: str = "Supplier A,Supplier B,Supplier C"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "CHIPTRACK_"}


def split_options(raw: str) -> list[str]:
    """Turn a comma separated setting into a clean option list."""
    return [part.strip() for part in raw.split(",") if part.strip()]


settings = Settings()
