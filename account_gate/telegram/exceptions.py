class DeliveryFailure(Exception):
    """A transport could not deliver a message (network, provider rejection)."""

    def __init__(self, transport: str, reason: str):
        self.transport = transport
        self.reason = reason
        super().__init__(f"{transport}: {reason}")
