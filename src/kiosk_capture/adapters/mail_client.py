"""Mail relay client adapter."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class MailClient(Protocol):
    """Interface for sending transactional mail."""

    async def send(self, to: str, subject: str, html: str) -> None:
        """Send an HTML message to a single recipient."""


@dataclass
class HttpxMailClient(MailClient):
    """Mail client that posts JSON messages to an HTTP relay."""

    api_url: str
    api_key: str
    sender: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, api_url: str, api_key: str, sender: str) -> "HttpxMailClient":
        """Create a mail client with a managed httpx session."""
        return cls(
            api_url=api_url,
            api_key=api_key,
            sender=sender,
            http_client=httpx.AsyncClient(),
        )

    async def send(self, to: str, subject: str, html: str) -> None:
        """Send a message through the relay."""
        response = await self.http_client.post(
            self.api_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"from": self.sender, "to": [to], "subject": subject, "html": html},
            timeout=10,
        )
        response.raise_for_status()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
