class UpkeepError(Exception):
    pass


class ComposeError(UpkeepError):
    pass


class MaintenanceError(UpkeepError):
    """A step failed in a way that must stop the run."""
