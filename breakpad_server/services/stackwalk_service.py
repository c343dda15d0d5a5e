"""Invocation of the external minidump-stackwalk analyzer."""

import logging
import subprocess
import tempfile
import time
from collections.abc import Sequence
from pathlib import Path

from prometheus_client import Histogram

from breakpad_server.exceptions import AnalysisException, StorageException

logger = logging.getLogger(__name__)

STACKWALK_DURATION_SECONDS = Histogram(
    "breakpad_stackwalk_duration_seconds",
    "Duration of minidump-stackwalk runs in seconds",
    ["status"],
)

# Name given to minidumps materialized from inline content
_TEMP_MINIDUMP_NAME = "minidump.dmp"


class StackwalkService:
    """Runs minidump-stackwalk and returns its textual report.

    The analyzer is called as ``<executable> <minidump> <symbol-dir>...``
    and its stdout is the stack trace.
    """

    def __init__(self, executable: str, timeout_seconds: float | None = None) -> None:
        self.executable = executable
        self.timeout_seconds = timeout_seconds

    def analyze(self, minidump: bytes | Path, symbol_paths: Sequence[Path | str]) -> str:
        """Produce a stack trace for a minidump.

        Args:
            minidump: Either the dump bytes or the path of a dump on disk.
                Bytes are written to a private temporary directory that is
                removed before returning.
            symbol_paths: Directories searched for symbol files

        Returns:
            Analyzer stdout decoded as UTF-8 (invalid bytes replaced)

        Raises:
            AnalysisException: If the analyzer cannot be started, times
                out, or exits with a non-zero status
            StorageException: If inline minidump bytes cannot be written
                to the temporary directory
        """
        if isinstance(minidump, (bytes, bytearray, memoryview)):
            with tempfile.TemporaryDirectory(prefix="breakpad-stackwalk-") as temp_dir:
                dump_path = Path(temp_dir) / _TEMP_MINIDUMP_NAME
                try:
                    dump_path.write_bytes(bytes(minidump))
                except OSError as e:
                    raise StorageException("write minidump for analysis", str(e)) from e
                return self._run(dump_path, symbol_paths)

        return self._run(Path(minidump), symbol_paths)

    def _run(self, dump_path: Path, symbol_paths: Sequence[Path | str]) -> str:
        args = [self.executable, str(dump_path), *(str(p) for p in symbol_paths)]
        logger.debug("Running %s", " ".join(args))

        start_time = time.perf_counter()
        status = "success"
        try:
            try:
                result = subprocess.run(
                    args,
                    capture_output=True,
                    check=False,
                    timeout=self.timeout_seconds,
                )
            except subprocess.TimeoutExpired as e:
                raise AnalysisException(
                    f"{self.executable} did not finish within {self.timeout_seconds} seconds",
                    stderr=_decode(e.stderr),
                ) from e
            except OSError as e:
                raise AnalysisException(f"cannot start {self.executable}: {e}") from e

            if result.returncode != 0:
                stderr = _decode(result.stderr)
                logger.warning(
                    "%s exited with code %d for %s: %s",
                    self.executable,
                    result.returncode,
                    dump_path,
                    stderr.strip(),
                )
                raise AnalysisException(
                    f"{self.executable} exited with code {result.returncode}: {stderr.strip()}",
                    stderr=stderr,
                    exit_code=result.returncode,
                )

            return _decode(result.stdout)

        except AnalysisException:
            status = "error"
            raise

        finally:
            STACKWALK_DURATION_SECONDS.labels(status=status).observe(time.perf_counter() - start_time)


def _decode(output: bytes | str | None) -> str:
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    return output.decode("utf-8", errors="replace")
