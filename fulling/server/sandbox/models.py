from pydantic import BaseModel


class ExecRequest(BaseModel):
    """Command to launch in the background of a sandbox."""

    command: str
    workdir: str | None = None  # Defaults to the sandbox home directory


class AppStatusResponse(BaseModel):
    running: bool
