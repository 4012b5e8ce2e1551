from pydantic import BaseModel, ConfigDict

from utils import format_duration, round_duration


class SyncResult(BaseModel):
    """Outcome of one run of the synchronization command."""

    model_config = ConfigDict(frozen=True)

    command: str
    exit_code: int
    duration_ns: int
    output: str
    success: bool

    @property
    def duration(self) -> str:
        return format_duration(round_duration(self.duration_ns))

    def report(self) -> str:
        return f"$ {self.command}  (exit:{self.exit_code} in {self.duration})\n{self.output}"
