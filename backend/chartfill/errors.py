class ChartfillError(Exception):
    """Base class for errors raised by chartfill."""


class ChartParseError(ChartfillError):
    """The bytes could not be read as either chart grammar."""


class DrumTrackNotFoundError(ChartfillError):
    def __init__(self, difficulty: str):
        self.difficulty = difficulty
        super().__init__(f"No drums track found for difficulty '{difficulty}'")


class InvalidConfigError(ChartfillError):
    def __init__(self, messages: list[str]):
        self.messages = messages
        super().__init__("Invalid detection config: " + "; ".join(messages))
