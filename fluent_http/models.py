"""Internal data models for fluent-http.

All models use Pydantic v2.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_COUNT = 0


class RequestOptions(BaseModel):
    """Transport settings fixed when a request is created."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    timeout: float = Field(
        default=DEFAULT_TIMEOUT, gt=0, description="Per-attempt timeout in seconds"
    )
    retry_count: int = Field(
        default=DEFAULT_RETRY_COUNT,
        ge=0,
        description="Extra attempts after the first one fails",
    )


class RequestConfig(BaseModel):
    """Configuration accumulated by one Request across chained calls.

    Header values are arrays to support repeated headers. Header names are
    stored in canonical form (see canonical_header_name).
    """

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(description="Destination URL, without the composed query")
    headers: dict[str, list[str]] = Field(
        default_factory=dict, description="Request headers (arrays for repeated headers)"
    )
    query_params: dict[str, str] = Field(
        default_factory=dict, description="Query parameters, replaced as a whole"
    )
    body: bytes | None = Field(default=None, description="Encoded request body")

    def add_header(self, name: str, value: str) -> None:
        self.headers.setdefault(canonical_header_name(name), []).append(value)

    def header_items(self) -> list[tuple[str, str]]:
        """Flatten headers to (name, value) pairs in insertion order."""
        return [(name, value) for name, values in self.headers.items() for value in values]


def canonical_header_name(name: str) -> str:
    """Return the canonical MIME form of a header name.

    The first letter and any letter following a hyphen are upper-cased, the
    rest lower-cased ("content-type" -> "Content-Type"). Names containing
    spaces or other non-token characters are returned unchanged.
    """
    if not name or not all(c.isascii() and (c.isalnum() or c in "!#$%&'*+-.^_`|~") for c in name):
        return name
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))
