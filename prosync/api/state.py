from __future__ import annotations

from dataclasses import dataclass

from prosync.repository import RecordStore
from prosync.services import Services


@dataclass
class AppState:
    store: RecordStore
    services: Services
