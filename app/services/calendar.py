"""Google Calendar mirror for reminders.

Only ever used best-effort: callers catch and log every error raised here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol

from config import settings

_LOGGER = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]
EVENT_DURATION = timedelta(minutes=15)


class CalendarClient(Protocol):
    async def create_event(self, summary: str, description: str, start: datetime) -> str: ...

    async def delete_event(self, event_id: str) -> None: ...

    async def update_event(self, event_id: str, start: datetime) -> None: ...


class GoogleCalendarClient:
    def __init__(self, token_file: str, calendar_id: str = "primary"):
        self.token_file = token_file
        self.calendar_id = calendar_id
        self._service = None

    def _get_service(self):
        if self._service is None:
            from google.auth.transport.requests import Request
            from google.oauth2.credentials import Credentials
            from googleapiclient.discovery import build

            creds = Credentials.from_authorized_user_file(self.token_file, SCOPES)
            if creds.expired and creds.refresh_token:
                creds.refresh(Request())
            self._service = build("calendar", "v3", credentials=creds, cache_discovery=False)
        return self._service

    @staticmethod
    def _times(start: datetime) -> dict:
        return {
            "start": {"dateTime": start.isoformat()},
            "end": {"dateTime": (start + EVENT_DURATION).isoformat()},
        }

    def _create(self, summary: str, description: str, start: datetime) -> str:
        body = {"summary": summary, "description": description, **self._times(start)}
        created = (
            self._get_service()
            .events()
            .insert(calendarId=self.calendar_id, body=body)
            .execute()
        )
        return created["id"]

    def _delete(self, event_id: str) -> None:
        self._get_service().events().delete(
            calendarId=self.calendar_id, eventId=event_id
        ).execute()

    def _update(self, event_id: str, start: datetime) -> None:
        self._get_service().events().patch(
            calendarId=self.calendar_id, eventId=event_id, body=self._times(start)
        ).execute()

    async def create_event(self, summary: str, description: str, start: datetime) -> str:
        return await asyncio.to_thread(self._create, summary, description, start)

    async def delete_event(self, event_id: str) -> None:
        await asyncio.to_thread(self._delete, event_id)

    async def update_event(self, event_id: str, start: datetime) -> None:
        await asyncio.to_thread(self._update, event_id, start)


def calendar_from_settings() -> Optional[GoogleCalendarClient]:
    if not settings.GOOGLE_CALENDAR_TOKEN_FILE:
        _LOGGER.info("GOOGLE_CALENDAR_TOKEN_FILE not set; reminders will not be mirrored")
        return None
    return GoogleCalendarClient(settings.GOOGLE_CALENDAR_TOKEN_FILE, settings.GOOGLE_CALENDAR_ID)
