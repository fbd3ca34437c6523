"""
Configuration management for the World Heritage Map.

Uses pydantic-settings for type-safe configuration with environment variable support.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataSourceSettings(BaseSettings):
    """Remote site data source settings."""

    model_config = SettingsConfigDict(
        env_prefix="WHS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Proxy function returning {"sites": [...]} or legacy SPARQL bindings
    url: str = "https://query.wikidata.org/sparql"
    method: Literal["GET", "POST"] = "GET"
    # "proxy" sends no query; "sparql" sends WIKIDATA_WHS_QUERY to the endpoint
    mode: Literal["proxy", "sparql"] = "sparql"
    timeout: int = 60  # seconds

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, v):
        """Accept lowercase method names from the environment."""
        return v.upper() if isinstance(v, str) else v


class MapSettings(BaseSettings):
    """Map rendering settings."""

    model_config = SettingsConfigDict(
        env_prefix="MAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    min_year: int = 1978  # First inscriptions
    default_max_year: int = 2025
    initial_center: tuple[float, float] = (20.0, 0.0)
    initial_zoom: int = 2
    min_zoom: int = 1
    max_zoom: int = 19
    fit_padding: int = 50  # pixels
    clustering: bool = True
    shade_factor: float = 0.18
    search_bar_height: int = 72  # pixels reserved by the fixed search bar
    popup_padding: int = 16  # pixels
    width: int = 1280
    height: int = 800


class ImageSettings(BaseSettings):
    """Popup image resolution settings."""

    model_config = SettingsConfigDict(
        env_prefix="IMAGES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    commons_api_url: str = "https://commons.wikimedia.org/w/api.php"
    thumb_width: int = 640
    max_images: int = 5
    timeout: float = 15.0


class PipelineSettings(BaseSettings):
    """Data pipeline settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # HTTP settings
    http_max_retries: int = 1  # failures surface to the user, who retries manually
    http_retry_delay: float = 1.0  # seconds


class APISettings(BaseSettings):
    """API server settings."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    load_on_startup: bool = True
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


class Settings(BaseSettings):
    """Main settings class that combines all settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-settings
    source: DataSourceSettings = Field(default_factory=DataSourceSettings)
    map: MapSettings = Field(default_factory=MapSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    api: APISettings = Field(default_factory=APISettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience function for quick access
settings = get_settings()


# =============================================================================
# Category Configuration
# =============================================================================

# Marker styling per heritage category; "all" doubles as the neutral color
CATEGORY_STYLES = {
    "cultural": {
        "color": "#DC2626",
        "label": "Cultural",
        "icon": '<i class="fa-solid fa-torii-gate" aria-hidden="true"></i>',
    },
    "natural": {
        "color": "#16A34A",
        "label": "Natural",
        "icon": '<i class="fa-solid fa-leaf" aria-hidden="true"></i>',
    },
    "mixed": {
        "color": "#F97316",
        "label": "Mixed",
        "icon": '<i class="fa-solid fa-circle-nodes" aria-hidden="true"></i>',
    },
    "all": {
        "color": "#0EA5E9",
        "label": "All Sites",
        "icon": '<i class="fa-solid fa-earth-americas" aria-hidden="true"></i>',
    },
}

NEUTRAL_COLOR = CATEGORY_STYLES["all"]["color"]

DEFAULT_SITE_NAME = "Unknown Site"
DEFAULT_COUNTRY = "Unknown"
DEFAULT_DESCRIPTION = "UNESCO World Heritage Site"

LOAD_ERROR_MESSAGE = "Unable to load data from Wikidata at the moment. Please try again later."


# =============================================================================
# Data Source Configuration
# =============================================================================

DATA_SOURCES = {
    "wikidata": {
        "name": "Wikidata",
        "description": "World Heritage Sites (Q9259) with coordinates and inscription dates",
        "url": "https://www.wikidata.org/",
        "api_url": "https://query.wikidata.org/sparql",
        "license": "CC0",
        "attribution": 'Data from <a href="https://www.wikidata.org/">Wikidata</a>',
    },
    "commons": {
        "name": "Wikimedia Commons",
        "description": "Site photographs",
        "url": "https://commons.wikimedia.org/",
        "api_url": "https://commons.wikimedia.org/w/api.php",
        "license": "Various CC licenses",
        "attribution": "Images from Wikimedia Commons",
    },
    "osm": {
        "name": "OpenStreetMap",
        "tiles": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "attribution": '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors',
    },
}

# One row per (site, multi-valued property); rows are merged by item URI
WIKIDATA_WHS_QUERY = """
SELECT ?item ?itemLabel ?description ?coordinate ?inscriptionYear ?unescoId
       ?officialUrl ?countryLabel ?criteriaLabel ?image WHERE {
  ?item wdt:P1435 wd:Q9259 ;
        wdt:P625 ?coordinate .
  OPTIONAL { ?item wdt:P757 ?unescoId . }
  OPTIONAL { ?item wdt:P17 ?country . }
  OPTIONAL { ?item wdt:P18 ?image . }
  OPTIONAL { ?item wdt:P973 ?officialUrl . }
  OPTIONAL {
    ?item p:P1435 ?statement .
    ?statement ps:P1435 wd:Q9259 .
    OPTIONAL { ?statement pq:P580 ?inscribed . }
    OPTIONAL { ?statement pq:P2614 ?criteria . }
  }
  BIND(YEAR(?inscribed) AS ?inscriptionYear)
  OPTIONAL { ?item schema:description ?description . FILTER(LANG(?description) = "en") }
  SERVICE wikibase:label { bd:serviceParam wikibase:language "en". }
}
"""
