"""
Application configuration
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""
    
    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    API_TITLE: str = "Runner WASM API"
    API_VERSION: str = "0.1.0"
    
    # Runner builds
    RUNNER_OUTPUT_ROOT: str = "/files/artifacts/runners"
    WASM_COMPILER: str = "clang"
    FRAGMENTS_DIR: str | None = None  # None = bundled fragments
    
    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
