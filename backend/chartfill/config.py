from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    fingerprint_max_workers: int = 4
    stream_duration: float = 100.0  # seconds of each stem that get fingerprinted
    fingerprint_sample_rate: int = 22050
    default_lane_map: str = "clone_hero"
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:3000"
    host: str = "127.0.0.1"
    port: int = 8000

    model_config = {
        "env_prefix": "CHARTFILL_",
        "env_file": "../.env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
