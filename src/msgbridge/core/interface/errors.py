"""Error types for the provider interface layer."""


class BridgeError(Exception):
    """Base error for all msgbridge failures."""


class ProviderResponseError(BridgeError):
    """A provider response is missing the payload needed to build a message."""

    def __init__(self, provider: str, detail: str = "") -> None:
        self.provider = provider
        self.detail = detail
        msg = f"Malformed {provider} response"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ClientNotConfiguredError(BridgeError):
    """No transport client was injected and none could be created."""

    def __init__(self, provider: str, hint: str = "") -> None:
        self.provider = provider
        self.hint = hint
        msg = f"No transport client available for {provider}"
        if hint:
            msg += f" ({hint})"
        super().__init__(msg)
