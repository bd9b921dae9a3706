from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    environment: str = "development"
    data_path: Path | None = None
    output_dir: Path = Path("results/reproducibility")
    seed: int = 42
    n_examples: int = 3
    n_workers: int = 1
    min_initial_count: float = 30

    class Config:
        env_file = ".env"
        env_prefix = "CRISPR_REPRO_"


settings = Settings()
