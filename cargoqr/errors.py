"""Error taxonomy for artifact production."""


class CargoQRError(Exception):
    """Base class for every error the compositor core raises."""


class PayloadTooLarge(CargoQRError):
    """The payload does not fit a QR symbol at the chosen error-correction level."""

    def __init__(self, payload_length: int, ecc: str):
        self.payload_length = payload_length
        self.ecc = ecc
        super().__init__(
            f"Cargo data is too large for a QR code: {payload_length} characters "
            f"at error correction level {ecc}. Shorten the description or notes."
        )


class PhotoUnavailable(CargoQRError):
    """No usable base photo; composition is skipped."""


class LocationUnavailable(CargoQRError):
    """The position source could not supply a fix. Never fatal."""

    def __init__(self, reason):
        self.reason = reason
        super().__init__(f"Location unavailable: {getattr(reason, 'value', reason)}")


class RenderFailure(CargoQRError):
    """The code renderer failed for a reason other than capacity."""


class PayloadFormatError(CargoQRError):
    """Payload text could not be parsed back into a cargo record."""
