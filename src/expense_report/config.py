from pathlib import Path
from typing import Tuple, Type

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, TomlConfigSettingsSource

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class OpenAISettings(BaseModel):
    model: str = "openai:gpt-4o-mini"


class ReportSettings(BaseModel):
    page_size: str = "A4"
    margin_mm: float = 14.0
    caption_top_mm: float = 15.0
    frame_top_mm: float = 25.0
    row_height_mm: float = 8.0
    # Oversampling factor for paginated documents, re-scaled down when drawn.
    render_scale: float = Field(default=2.0, ge=2.0)
    jpeg_quality: int = Field(default=90, ge=1, le=95)
    currency_symbol: str = "€"
    date_format: str = "%d/%m/%Y"


class PathSettings(BaseModel):
    profile_store: Path = Path("storage/profile.json")
    output_dir: Path = Path("output")


TOML_FILE = PROJECT_ROOT / "config.toml"


class Settings(BaseSettings):
    openai: OpenAISettings = OpenAISettings()
    report: ReportSettings = ReportSettings()
    paths: PathSettings = PathSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        **kwargs,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (TomlConfigSettingsSource(settings_cls, toml_file=TOML_FILE),)

    @property
    def profile_store_path(self) -> Path:
        return PROJECT_ROOT / self.paths.profile_store

    @property
    def output_dir_path(self) -> Path:
        return PROJECT_ROOT / self.paths.output_dir


settings = Settings()
