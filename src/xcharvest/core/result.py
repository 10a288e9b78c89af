"""Value objects for command results."""

from pydantic import BaseModel


class CommandResult(BaseModel):
    """Result of one external command execution."""

    argv: list[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def success(self) -> bool:
        """Return True if the command exited with status 0."""
        return self.exit_code == 0

    @property
    def diagnostics(self) -> str:
        """Stderr, or a placeholder when the tool printed nothing."""
        return self.stderr.strip() or "No error details available"
