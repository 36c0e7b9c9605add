import os
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from dotenv import load_dotenv


def _csv(value: str) -> List[str]:
    return [s.strip() for s in value.split(',') if s.strip()]


@dataclass
class Settings:
    jira_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_token: Optional[str] = None
    jira_timeout: int = 30
    server_port: int = 5050
    sprint_horizon: int = 50
    sprint_length_days: int = 14
    default_sprint_start_date: date = date(2025, 5, 26)
    excluded_statuses: List[str] = field(default_factory=list)
    ignored_link_statuses: List[str] = field(default_factory=lambda: ['Closed'])

    @property
    def jira_configured(self) -> bool:
        return bool(self.jira_url and self.jira_email and self.jira_token)


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Read settings from the environment, after loading a .env file if present."""
    load_dotenv(env_file)
    return Settings(
        jira_url=os.getenv('JIRA_URL'),
        jira_email=os.getenv('JIRA_EMAIL'),
        jira_token=os.getenv('JIRA_TOKEN'),
        jira_timeout=int(os.getenv('JIRA_TIMEOUT', '30')),
        server_port=int(os.getenv('SERVER_PORT', '5050')),
        sprint_horizon=int(os.getenv('SPRINT_HORIZON', '50')),
        sprint_length_days=int(os.getenv('SPRINT_LENGTH_DAYS', '14')),
        default_sprint_start_date=date.fromisoformat(os.getenv('DEFAULT_SPRINT_START_DATE', '2025-05-26')),
        excluded_statuses=_csv(os.getenv('EXCLUDED_STATUSES', 'Closed,Resolved')),
        ignored_link_statuses=_csv(os.getenv('IGNORED_LINK_STATUSES', 'Closed')),
    )
