"""Shell scripts executed inside sandbox containers.

SandboxManager never concatenates shell itself. It asks a SandboxShellCommands
instance for the argv of each remote operation, so a different transport can
be swapped in without touching the orchestration code.

Quoting rules:
- Paths (working directory, session marker file) are passed through shlex.quote.
- Ports are coerced to int before interpolation.
- The caller's background command is handed to a child shell unchanged. It is
  a shell command line by contract (pipes, &&, env assignments are all
  expected), so whoever accepts it from an end user owns the injection surface.
"""

import shlex

from fulling.configs.sandbox_configs import EXEC_LOG_DIR
from fulling.configs.sandbox_configs import SANDBOX_HOME_DIR
from fulling.configs.sandbox_configs import SANDBOX_PROJECT_DIR
from fulling.configs.sandbox_configs import SANDBOX_TEMPLATE_PATH
from fulling.configs.sandbox_configs import SANDBOX_USER_ID
from fulling.configs.sandbox_configs import TERMINAL_SESSION_FILE_PREFIX
from fulling.k8s.errors import ExecOutputParseError
from fulling.k8s.models import CurrentDirectoryInfo

# Exit codes of the current-directory script
SESSION_FILE_MISSING_EXIT_CODE = 2
SESSION_PID_UNREADABLE_EXIT_CODE = 3
SESSION_PROCESS_GONE_EXIT_CODE = 4
SESSION_CWD_UNREADABLE_EXIT_CODE = 5

PORT_LISTENING_MARKER = "listening"
PORT_NOT_LISTENING_MARKER = "not listening"
NO_PROCESS_MARKER = "no process"
KILLED_MARKER_PREFIX = "killed"


def build_init_container_script(
    home_dir: str = SANDBOX_HOME_DIR,
    project_dir: str = SANDBOX_PROJECT_DIR,
    template_path: str = SANDBOX_TEMPLATE_PATH,
    user_id: int = SANDBOX_USER_ID,
) -> str:
    """Script for the init container that prepares the home volume.

    Runs on every pod start, so it must be safe to repeat:
    - .bashrc is copied from /etc/skel only when missing, never overwritten.
    - The project template is copied only when the project directory is
      absent or completely empty. Any entry in it (hidden files included)
      counts as user work.
    - node_modules is not part of the template; the user installs it.
    """
    return f"""
set -e

echo "=== Init Container: Home Directory Initialization ==="

if [ -f {home_dir}/.bashrc ]; then
  echo "✓ .bashrc already exists (preserving user configuration)"
elif [ -f /etc/skel/.bashrc ]; then
  echo "→ Copying default .bashrc"
  cp /etc/skel/.bashrc {home_dir}/.bashrc
  chown {user_id}:{user_id} {home_dir}/.bashrc
  chmod 644 {home_dir}/.bashrc
  echo "✓ .bashrc initialized"
else
  echo "⚠ Warning: /etc/skel/.bashrc not found in image"
fi

if [ -d {project_dir} ]; then
  if [ -n "$(ls -A {project_dir} 2>/dev/null)" ]; then
    echo "✓ Project already exists at {project_dir} (preserving user project)"
    echo "=== Init Container: Completed successfully ==="
    exit 0
  fi
  echo "→ {project_dir} exists but is empty, re-initializing"
  rmdir {project_dir}
fi

if [ ! -d {template_path} ]; then
  echo "✗ ERROR: project template not found at {template_path}"
  exit 1
fi

echo "→ Copying project template from {template_path} to {project_dir}"
mkdir -p {project_dir}
cp -rp {template_path}/. {project_dir} 2>&1 || {{
  echo "✗ ERROR: Failed to copy template"
  exit 1
}}

if [ ! -f {project_dir}/package.json ]; then
  echo "✗ ERROR: Project copy incomplete - package.json not found"
  ls -la {project_dir} 2>&1 || true
  exit 1
fi

# cp runs as root here, hand the files to the sandbox user
chown -R {user_id}:{user_id} {project_dir} 2>&1 || {{
  echo "⚠ Warning: Failed to set ownership, continuing"
}}
chmod -R u+rwX,g+rX,o+rX {project_dir} 2>&1 || {{
  echo "⚠ Warning: Failed to set permissions, continuing"
}}

FILE_COUNT=$(find {project_dir} -type f | wc -l)
echo "✓ Copied $FILE_COUNT files"
echo "⚠ node_modules not included - run 'pnpm install' to install dependencies"
echo "=== Init Container: Completed successfully ==="
""".strip()


def build_filebrowser_startup_script(port: int) -> str:
    """Bootstraps the file browser database and admin user on first start only."""
    return f"""
set -e

if [ ! -f /database/filebrowser.db ]; then
  echo "→ Database not found, initializing"
  filebrowser config init \\
    --database /database/filebrowser.db \\
    --root /srv \\
    --address 0.0.0.0 \\
    --port {int(port)}

  filebrowser users add "$FILE_BROWSER_USERNAME" "$FILE_BROWSER_PASSWORD" \\
    --database /database/filebrowser.db \\
    --perm.admin
  echo "✓ User created: $FILE_BROWSER_USERNAME"
else
  echo "✓ Database already exists, skipping initialization"
fi

exec filebrowser --database /database/filebrowser.db
""".strip()


def parse_pid(output: str) -> int:
    """Parse the PID echoed by the background launch script.

    Raises:
        ExecOutputParseError: If the output is not a single positive integer
    """
    text = output.strip()
    try:
        pid = int(text)
    except ValueError as e:
        raise ExecOutputParseError(
            f"Failed to parse PID from output: {output!r}"
        ) from e

    if pid <= 0:
        raise ExecOutputParseError(f"Failed to parse PID from output: {output!r}")

    return pid


def parse_current_directory(output: str) -> CurrentDirectoryInfo:
    """Parse the NUL-separated fields printed by the current-directory script.

    Raises:
        ExecOutputParseError: If the output does not hold exactly those fields
    """
    fields = output.split("\0")
    if len(fields) != 3:
        raise ExecOutputParseError(
            f"Failed to parse current directory output: {output!r}"
        )

    cwd, home_dir, is_in_home = fields
    # printf ends the record with a newline, paths keep theirs
    is_in_home = is_in_home.rstrip("\n")
    if not cwd or not home_dir or is_in_home not in ("true", "false"):
        raise ExecOutputParseError(
            f"Failed to parse current directory output: {output!r}"
        )

    return CurrentDirectoryInfo(
        cwd=cwd, home_dir=home_dir, is_in_home=is_in_home == "true"
    )


class SandboxShellCommands:
    """Builds the argv for every operation the exec bridge runs in a sandbox."""

    def __init__(
        self,
        shell: str = "bash",
        exec_log_dir: str = EXEC_LOG_DIR,
        session_file_prefix: str = TERMINAL_SESSION_FILE_PREFIX,
        default_home_dir: str = SANDBOX_HOME_DIR,
    ) -> None:
        self._shell = shell
        self._exec_log_dir = exec_log_dir
        self._session_file_prefix = session_file_prefix
        self._default_home_dir = default_home_dir

    def _argv(self, script: str) -> list[str]:
        return [self._shell, "-c", script]

    def background_launch(
        self, command: str, workdir: str, timestamp_ms: int
    ) -> list[str]:
        """Detach `command` under nohup and print its PID as the only stdout.

        Fails fast (exit 1) when `workdir` does not exist. The whole command
        line runs in one child shell, so a chain like `pnpm build && pnpm start`
        is detached as a unit and all of its output is appended to
        {exec_log_dir}/{timestamp_ms}.log.
        """
        log_dir = shlex.quote(self._exec_log_dir)
        log_file = shlex.quote(f"{self._exec_log_dir}/{int(timestamp_ms)}.log")
        script = f"""
cd {shlex.quote(workdir)} || exit 1
mkdir -p {log_dir}
nohup {self._shell} -c {shlex.quote(command)} < /dev/null >> {log_file} 2>&1 &
echo $!
""".strip()
        return self._argv(script)

    def port_probe(self, port: int) -> list[str]:
        """Prints exactly 'listening' or 'not listening'."""
        script = (
            f"netstat -tuln 2>/dev/null | grep -q ':{int(port)} ' "
            f"&& echo '{PORT_LISTENING_MARKER}' || echo '{PORT_NOT_LISTENING_MARKER}'"
        )
        return self._argv(script)

    def kill_port(self, port: int) -> list[str]:
        """Sends SIGTERM to the owner of a listening port.

        netstat -tulnp prints e.g. `tcp 0 0 0.0.0.0:3000 0.0.0.0:* LISTEN 12345/node`.
        Prints 'killed <pid>', 'no process' or 'failed'.
        """
        script = f"""
pid=$(netstat -tulnp 2>/dev/null | grep ':{int(port)} ' | awk '{{print $7}}' | cut -d'/' -f1 | head -1)
if [ -n "$pid" ] && [ "$pid" != "-" ]; then
  kill $pid 2>/dev/null && echo "{KILLED_MARKER_PREFIX} $pid" || echo "failed"
else
  echo "{NO_PROCESS_MARKER}"
fi
""".strip()
        return self._argv(script)

    def current_directory(self, session_id: str) -> list[str]:
        """Resolve the working directory of a terminal session's shell.

        The terminal session writes its shell PID to the marker file; an exec'd
        shell cannot see the terminal's environment, so the file is the only
        link. Prints cwd, home directory and "true"/"false" separated by NUL bytes,
        the only byte a path cannot contain. Each failure mode exits with its
        own code and a message on stderr.
        """
        session_file = shlex.quote(f"{self._session_file_prefix}{session_id}")
        default_home = shlex.quote(self._default_home_dir)
        script = f"""
SESSION_FILE={session_file}
if [ ! -f "$SESSION_FILE" ]; then
  echo "ERROR: Session file not found: $SESSION_FILE" >&2
  echo "HINT: Make sure the terminal has fully loaded" >&2
  exit {SESSION_FILE_MISSING_EXIT_CODE}
fi

SHELL_PID=$(tr -d '[:space:]' < "$SESSION_FILE" 2>/dev/null)
if [ -z "$SHELL_PID" ]; then
  echo "ERROR: Failed to read PID from session file: $SESSION_FILE" >&2
  exit {SESSION_PID_UNREADABLE_EXIT_CODE}
fi

if [ ! -d "/proc/$SHELL_PID" ]; then
  echo "ERROR: Process $SHELL_PID no longer exists" >&2
  echo "HINT: The terminal session may have been closed" >&2
  exit {SESSION_PROCESS_GONE_EXIT_CODE}
fi

CWD=$(readlink -f "/proc/$SHELL_PID/cwd" 2>/dev/null)
if [ -z "$CWD" ]; then
  echo "ERROR: Failed to read current directory for PID $SHELL_PID" >&2
  exit {SESSION_CWD_UNREADABLE_EXIT_CODE}
fi

OWNER=$(stat -c '%U' "/proc/$SHELL_PID" 2>/dev/null)
HOME_DIR=""
if [ -n "$OWNER" ]; then
  HOME_DIR=$(getent passwd "$OWNER" | cut -d: -f6)
fi
if [ -z "$HOME_DIR" ]; then
  HOME_DIR={default_home}
fi

case "$CWD" in
  "$HOME_DIR"|"$HOME_DIR"/*) IS_IN_HOME=true ;;
  *) IS_IN_HOME=false ;;
esac

printf '%s\\0%s\\0%s\\n' "$CWD" "$HOME_DIR" "$IS_IN_HOME"
""".strip()
        return self._argv(script)
