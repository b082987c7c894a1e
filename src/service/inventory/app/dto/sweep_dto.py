import attrs


@attrs.define
class SweepReport:
    scanned: int = 0
    expired: int = 0
    skipped: int = 0  # already terminal or extended by the time we got to it
    failed: int = 0
