import asyncio

from config import settings
from exceptions import ToolError, TranscodeTimeoutError
from utils.logging import get_logger

logger = get_logger("utils.subprocess")


async def run_tool(
    cmd: list[str],
    input_data: bytes,
    timeout: float | None = None,
) -> bytes:
    """Pipe `input_data` through an external encoder and return its stdout.

    Args:
        cmd: Executable and arguments, e.g. ["cjpeg", "-quality", "85"].
        input_data: Bytes written to the tool's stdin.
        timeout: Seconds before the process is killed.
            Defaults to settings.transcode_timeout_seconds.

    Raises:
        TranscodeTimeoutError: The process outlived `timeout`.
        ToolError: Executable missing, non-zero exit, or empty output.
    """
    tool = cmd[0]
    if timeout is None:
        timeout = settings.transcode_timeout_seconds

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ToolError(f"{tool} is not installed", tool=tool) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(input=input_data), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise TranscodeTimeoutError(f"{tool} timed out after {timeout}s", tool=tool, timeout=timeout)

    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip()[:500]
        raise ToolError(
            f"{tool} exited with code {proc.returncode}: {detail}",
            tool=tool,
            exit_code=proc.returncode,
        )
    if not stdout:
        raise ToolError(f"{tool} produced no output", tool=tool)

    logger.debug(
        f"{tool} wrote {len(stdout)} bytes",
        extra={"context": {"tool": tool, "input_size": len(input_data), "output_size": len(stdout)}},
    )
    return stdout
