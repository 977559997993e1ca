class RatingsError(Exception):
    pass


class ProviderUnavailable(RatingsError):
    """A provider call failed: network error, non-2xx status or a body that is not JSON."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} unavailable: {detail}")


class IncompleteCredential(RatingsError):
    """One or both provider API keys are missing or rejected."""

    def __init__(self, missing: list[str] | None = None, invalid: list[str] | None = None):
        self.missing = list(missing or [])
        self.invalid = list(invalid or [])
        parts = []
        if self.missing:
            parts.append("missing " + ", ".join(self.missing))
        if self.invalid:
            parts.append("invalid " + ", ".join(self.invalid))
        super().__init__("API keys unusable: " + "; ".join(parts or ["unknown"]))

    @property
    def messages(self) -> list[str]:
        return [f"Invalid {name} API key" for name in self.missing + self.invalid]


class MalformedCacheEntry(RatingsError):
    def __init__(self, title: str, detail: str = ""):
        self.title = title
        super().__init__(f"Malformed cache entry for {title!r}: {detail}".rstrip(": "))
