"""Subprocess-backed shell sessions for local command execution."""

from __future__ import annotations

import atexit
import codecs
import logging as py_logging
import shutil
import subprocess
import sys
import threading
import uuid
from collections.abc import Callable
from contextlib import suppress

from fullcontrol.collaborators import ExitCallback, OutputCallback, Session, Unsubscribe
from fullcontrol.errors import ExitCode, FullControlError

logger = py_logging.getLogger(__name__)

ProcessSpawn = Callable[[list[str], str | None, dict[str, str] | None], object]

_READ_CHUNK_BYTES = 4096
_TERMINATE_GRACE_SECONDS = 2.0


def build_shell_command(platform: str | None = None) -> list[str]:
    resolved = platform or sys.platform
    if resolved.startswith("win"):
        return ["powershell.exe", "-NoLogo", "-NoProfile", "-Command", "-"]
    shell = shutil.which("bash") or shutil.which("sh") or "/bin/sh"
    return [shell]


def _spawn_with_subprocess(command: list[str], cwd: str | None, env: dict[str, str] | None) -> object:
    return subprocess.Popen(
        command,
        cwd=cwd,
        env=env,
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        bufsize=0,
    )


class LocalTerminalRunner:
    """Runs one shell process per session and streams its combined output.

    Commands are written to the shell's stdin. A reader thread per session
    publishes decoded output chunks and, once the stream is drained, the exit
    code of the shell.
    """

    def __init__(
        self,
        spawn: ProcessSpawn | None = None,
        *,
        shell_command: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self._spawn = spawn or _spawn_with_subprocess
        self._shell_command = list(shell_command) if shell_command else build_shell_command()
        self._env = dict(env) if env is not None else None
        self._processes: dict[str, object] = {}
        self._sizes: dict[str, tuple[int, int]] = {}
        self._output_listeners: list[OutputCallback] = []
        self._exit_listeners: list[ExitCallback] = []
        self._lock = threading.Lock()
        atexit.register(self.stop_all)

    def create_session(self, *, cwd: str | None = None) -> Session:
        session_id = f"term-{uuid.uuid4().hex[:12]}"
        try:
            process = self._spawn(self._shell_command, cwd, self._env)
        except FullControlError:
            raise
        except Exception as exc:
            raise FullControlError(
                "Failed to start shell session.",
                code=ExitCode.RUNTIME_ERROR,
                hint=str(exc) or "Check the shell installation and working directory.",
            ) from exc

        with self._lock:
            self._processes[session_id] = process
        reader = threading.Thread(
            target=self._pump,
            args=(session_id, process),
            name=f"fullcontrol-{session_id}",
            daemon=True,
        )
        reader.start()
        logger.debug("Shell session started session=%s cwd=%s", session_id, cwd or "")
        return Session(session_id=session_id, cwd=cwd)

    def write(self, session_id: str, data: str) -> None:
        process = self._require_session(session_id)
        stream = getattr(process, "stdin", None)
        if stream is None:
            raise FullControlError(
                f"Terminal session has no input stream: {session_id}",
                code=ExitCode.RUNTIME_ERROR,
                hint="Recreate the session.",
            )
        try:
            stream.write(data.encode("utf-8"))
            stream.flush()
        except Exception as exc:
            raise FullControlError(
                f"Failed to write to terminal {session_id}.",
                code=ExitCode.RUNTIME_ERROR,
                hint=str(exc) or "Verify terminal process health.",
            ) from exc

    def on_output(self, callback: OutputCallback) -> Unsubscribe:
        return self._subscribe(self._output_listeners, callback)

    def on_exit(self, callback: ExitCallback) -> Unsubscribe:
        return self._subscribe(self._exit_listeners, callback)

    def resize(self, session_id: str, cols: int, rows: int) -> None:
        if cols <= 0 or rows <= 0:
            raise FullControlError(
                f"Invalid terminal size: {cols}x{rows}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Use positive terminal row/column values.",
            )
        self._require_session(session_id)
        # Pipes carry no window size; the value is kept for callers that render it.
        with self._lock:
            self._sizes[session_id] = (cols, rows)

    def size(self, session_id: str) -> tuple[int, int] | None:
        with self._lock:
            return self._sizes.get(session_id)

    def close(self, session_id: str) -> None:
        with self._lock:
            process = self._processes.pop(session_id, None)
            self._sizes.pop(session_id, None)
        if process is None:
            return
        self._close_process(process)
        logger.debug("Shell session closed session=%s", session_id)

    def stop_all(self) -> None:
        with self._lock:
            ids = list(self._processes)
        for session_id in ids:
            self.close(session_id)

    def list_sessions(self) -> list[str]:
        with self._lock:
            return sorted(self._processes)

    def _subscribe(self, listeners: list, callback: Callable) -> Unsubscribe:
        with self._lock:
            listeners.append(callback)

        def _unsubscribe() -> None:
            with self._lock, suppress(ValueError):
                listeners.remove(callback)

        return _unsubscribe

    def _require_session(self, session_id: str) -> object:
        with self._lock:
            process = self._processes.get(session_id)
        if process is None:
            raise FullControlError(
                f"Terminal not running: {session_id}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Create a session before terminal I/O operations.",
            )
        return process

    def _pump(self, session_id: str, process: object) -> None:
        stream = getattr(process, "stdout", None)
        if stream is not None:
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            while True:
                try:
                    chunk = stream.read(_READ_CHUNK_BYTES)
                except (OSError, ValueError):
                    break
                if not chunk:
                    break
                text = decoder.decode(chunk) if isinstance(chunk, bytes) else str(chunk)
                if text:
                    self._emit_output(session_id, text)
            tail = decoder.decode(b"", final=True)
            if tail:
                self._emit_output(session_id, tail)

        exit_code = _wait_for_exit(process)
        with self._lock:
            self._processes.pop(session_id, None)
            self._sizes.pop(session_id, None)
            listeners = list(self._exit_listeners)
        logger.debug("Shell session exited session=%s code=%s", session_id, exit_code)
        for listener in listeners:
            try:
                listener(session_id, exit_code)
            except Exception:
                logger.warning("Terminal exit listener failed session=%s", session_id, exc_info=True)

    def _emit_output(self, session_id: str, text: str) -> None:
        with self._lock:
            listeners = list(self._output_listeners)
        for listener in listeners:
            try:
                listener(session_id, text)
            except Exception:
                logger.warning("Terminal output listener failed session=%s", session_id, exc_info=True)

    def _close_process(self, process: object) -> None:
        stream = getattr(process, "stdin", None)
        if stream is not None:
            with suppress(OSError, ValueError):
                stream.close()
        if _poll(process) is not None:
            return
        with suppress(OSError):
            process.terminate()
        try:
            process.wait(timeout=_TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            with suppress(OSError):
                process.kill()


def _poll(process: object) -> int | None:
    try:
        return process.poll()
    except Exception:
        return None


def _wait_for_exit(process: object) -> int:
    try:
        code = process.wait()
    except Exception:
        return -1
    return int(code) if code is not None else -1
