from dataclasses import dataclass

@dataclass
class AppState:
    db_path: str
    support_server: str | None = None
    closed: bool = False
