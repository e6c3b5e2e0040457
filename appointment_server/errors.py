class CommandError(Exception):
    """An expected command outcome, written back to the client as ``ERROR <kind>``."""

    def __init__(self, kind: str):
        super().__init__(kind)
        self.kind = kind
