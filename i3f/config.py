from pydantic_settings import BaseSettings, SettingsConfigDict

from i3f.iiif.geometry import SizeLimits


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "i3f"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
    cors_origins: list[str] = ["*"]

    images_path: str = "/app/images"
    cache_path: str = "/app/cache"
    cache_enabled: bool = True
    cache_max_age: int = 86400

    max_width: int | None = None
    max_height: int | None = None
    max_area: int | None = None
    jpeg_quality: int = 85

    def size_limits(self) -> SizeLimits:
        return SizeLimits(max_width=self.max_width, max_height=self.max_height, max_area=self.max_area)


settings = Settings()
