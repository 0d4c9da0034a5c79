from typing import Any, Optional


class UpstreamError(RuntimeError):
    """A third-party call failed; carries what the upstream said back."""

    def __init__(self, detail: str, *, status_code: Optional[int] = None, body: Any = None, service: str = ""):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
        self.body = body
        self.service = service

    @property
    def http_status(self) -> int:
        # Forward the upstream status only when it is an error status
        if self.status_code and 400 <= self.status_code <= 599:
            return self.status_code
        return 502


class MissingCredentials(RuntimeError):
    def __init__(self, name: str):
        super().__init__(f"{name} is missing")
        self.name = name


class SheetError(RuntimeError):
    def __init__(self, detail: str, *, hint: str = ""):
        super().__init__(detail)
        self.detail = detail
        self.hint = hint


class JobStateError(RuntimeError):
    pass
