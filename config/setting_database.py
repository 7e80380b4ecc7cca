from typing import Optional
from pydantic_settings import BaseSettings


class SettingDatabase(BaseSettings):
    db_host: str = "localhost"
    db_port: int = 3306
    db_name: str = "qa_portal"
    db_user: str = "root"
    db_password: str = ""

    # Full SQLAlchemy URL, takes precedence over the parts above
    database_url: Optional[str] = None

    app_name: str = "QA Portal Realtime"
    app_version: str = "1.0.0"
    app_description: str = "Notifications, live rooms and interaction counters for the Q&A portal"
    debug: bool = False

    class Config:
        env_file = ".env"
        extra = "allow"

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"mysql+pymysql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"


def get_settings():
    return SettingDatabase()
