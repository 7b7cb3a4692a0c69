from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+psycopg2://postgres:postgres@db:5432/echoscore"

    log_level: str = "INFO"

    # Evaluation forms are scored on a 1-10 scale by hand; derived scores use the same ceiling
    evaluation_score_scale: float = 10.0
    evaluation_min_manual_score: float = 1.0

    # Auth settings
    session_cookie_name: str = "echoscore_session"

    class Config:
        env_file = ".env"


settings = Settings()
