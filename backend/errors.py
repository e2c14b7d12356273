"""
Pipeline error taxonomy
Each error carries the wire code and HTTP status surfaced by the API
"""

from typing import Optional


class AnalysisError(Exception):
    """Terminal failure of a channel analysis request."""

    code = "ANALYSIS_FAILED"
    status_code = 500

    def __init__(self, detail: Optional[str] = None, channel_id: Optional[str] = None):
        super().__init__(detail or self.code)
        self.detail = detail
        # Set once the query has been resolved; recorded by analytics, never sent to clients
        self.channel_id = channel_id

    def to_dict(self) -> dict:
        payload = {"error": self.code}
        if self.detail:
            payload["detail"] = self.detail
        return payload


class MissingQueryError(AnalysisError):
    code = "MISSING_QUERY"
    status_code = 400


class ServerMisconfigError(AnalysisError):
    code = "SERVER_MISCONFIG"
    status_code = 500


class ChannelNotFoundError(AnalysisError):
    code = "CHANNEL_NOT_FOUND"
    status_code = 404


class NoVideosFoundError(AnalysisError):
    code = "NO_VIDEOS_FOUND"
    status_code = 404


class AnalysisTimeoutError(AnalysisError):
    code = "TIMEOUT"
    status_code = 408


class YouTubeAPIError(Exception):
    """Non-success response from the YouTube Data API."""

    def __init__(self, endpoint: str, status_code: int, message: str = ""):
        super().__init__(f"YouTube API {endpoint} returned {status_code}: {message}".rstrip(": "))
        self.endpoint = endpoint
        self.status_code = status_code
