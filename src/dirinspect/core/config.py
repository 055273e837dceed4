"""
Configuration management for the inspection server
"""
import os
import json
from typing import Literal, Optional
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Configuration for the listening server"""
    host: str = "0.0.0.0"
    port: int = Field(default=9090, ge=0, le=65535)
    backlog: int = Field(default=10, gt=0)
    concurrency: Literal["process", "thread"] = "process"
    buffer_size: int = Field(default=4096, gt=0)
    receive_timeout: Optional[float] = None  # seconds, None blocks forever


class StorageConfig(BaseModel):
    """Configuration for on-disk state"""
    credentials_file: str = "data/users.txt"
    session_log_dir: str = "logs"
    path_list_dir: Optional[str] = None  # defaults to the system temp dir


class TransferConfig(BaseModel):
    """Configuration for file streaming"""
    chunk_size: int = Field(default=4096, gt=0)


class LoggingConfig(BaseModel):
    """Configuration for process-level logging"""
    level: str = "INFO"
    file: Optional[str] = "logs/server.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ClientConfig(BaseModel):
    """Configuration for the requesting side"""
    host: str = "127.0.0.1"
    port: int = Field(default=9090, ge=1, le=65535)
    buffer_size: int = Field(default=4096, gt=0)


class Config(BaseModel):
    """Main configuration class"""
    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables"""
        config = cls()
        if os.getenv("DIRINSPECT_HOST"):
            config.server.host = os.environ["DIRINSPECT_HOST"]
        if os.getenv("DIRINSPECT_PORT"):
            config.server.port = int(os.environ["DIRINSPECT_PORT"])
            config.client.port = config.server.port
        if os.getenv("DIRINSPECT_CONCURRENCY"):
            config.server.concurrency = os.environ["DIRINSPECT_CONCURRENCY"]
        if os.getenv("DIRINSPECT_CREDENTIALS"):
            config.storage.credentials_file = os.environ["DIRINSPECT_CREDENTIALS"]
        if os.getenv("DIRINSPECT_LOG_DIR"):
            config.storage.session_log_dir = os.environ["DIRINSPECT_LOG_DIR"]
        if os.getenv("DIRINSPECT_LOG_LEVEL"):
            config.logging.level = os.environ["DIRINSPECT_LOG_LEVEL"]
        # Re-validate so bad env values fail the same way bad files do
        return cls.model_validate(config.model_dump())

    @classmethod
    def load_from_file(cls, file_path: str) -> "Config":
        """Load configuration from JSON file"""
        with open(file_path, 'r') as f:
            data = json.load(f)
        return cls(**data)

    def save_to_file(self, file_path: str) -> None:
        """Save configuration to JSON file"""
        with open(file_path, 'w') as f:
            json.dump(self.model_dump(), f, indent=2)
