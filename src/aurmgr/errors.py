class ResolutionError(RuntimeError):
    """
    A package source could not complete a lookup at all.
    """


class PacmanError(RuntimeError):
    """
    pacman exited unsuccessfully.
    """

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.command = args
        self.returncode = returncode
        self.stderr = stderr
        message = f"Failed executing {' '.join(args)}, return code {returncode}."
        if stderr.strip() != "":
            message = f"{message}\n{stderr.strip()}"
        super().__init__(message)


class BuildError(RuntimeError):
    pass


class StateReadError(RuntimeError):
    pass


class ReconcileError(RuntimeError):
    """
    One or both of the batched reinstall and removal calls failed.
    """

    def __init__(self, failures: list[RuntimeError]) -> None:
        self.failures = failures
        super().__init__("\n".join(str(failure) for failure in failures))


class ConfigError(RuntimeError):
    pass
