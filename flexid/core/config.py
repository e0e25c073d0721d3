from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"
    EPOCH: int = 946684800000
    SEQUENCE_BITS: int = 6
    PARTITION_BITS: int = 6
    CHECKSUM_BITS: int = 4
    DEFAULT_PARTITION: int = 0
    MAX_WAIT_MS: int = 5
    MAX_BATCH_SIZE: int = 1000
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
