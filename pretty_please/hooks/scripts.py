"""Shell startup snippets that append every interactive command to the hook log.

Each snippet writes one JSON line ``{"cmd", "exit", "time"}`` per command
and truncates the log to its last N lines. N is baked in when the snippet
is generated, so changing the limit requires a reinstall.
"""

from collections.abc import Callable

from pretty_please.models import ShellKind

BEGIN_MARKER = "# >>> pretty-please shell hook >>>"
END_MARKER = "# <<< pretty-please shell hook <<<"

_POSIX_RECORD = r"""    local log_file=__LOG_FILE__
    local timestamp=$(date -u +"%Y-%m-%dT%H:%M:%SZ")
    local escaped_cmd=$(printf '%s' "$__PLS_CMD" | tr '\n\t' '  ' | sed 's/\\/\\\\/g; s/"/\\"/g')
    mkdir -p __LOG_DIR__
    printf '{"cmd":"%s","exit":%d,"time":"%s"}\n' "$escaped_cmd" "$exit_code" "$timestamp" >> "$log_file"
    tail -n __LIMIT__ "$log_file" > "$log_file.tmp" && mv "$log_file.tmp" "$log_file"
"""

_ZSH_BODY = r"""# Records each command to the pretty-please history log
__pls_preexec() {
  __PLS_LAST_CMD="$1"
}

__pls_precmd() {
  local exit_code=$?
  if [[ -n "$__PLS_LAST_CMD" ]]; then
    local __PLS_CMD="$__PLS_LAST_CMD"
__RECORD__
    unset __PLS_LAST_CMD
  fi
}

autoload -Uz add-zsh-hook
add-zsh-hook preexec __pls_preexec
add-zsh-hook precmd __pls_precmd"""

_BASH_BODY = r"""# Records each command to the pretty-please history log
__pls_prompt_command() {
  local exit_code=$?
  local __PLS_CMD=$(HISTTIMEFORMAT= history 1 | sed 's/^ *[0-9]* *//')
  if [[ -n "$__PLS_CMD" && "$__PLS_CMD" != "$__PLS_LAST_CMD" ]]; then
    __PLS_LAST_CMD="$__PLS_CMD"
__RECORD__
  fi
  return $exit_code
}

if [[ ! "$PROMPT_COMMAND" =~ __pls_prompt_command ]]; then
  PROMPT_COMMAND="__pls_prompt_command;${PROMPT_COMMAND}"
fi"""

_POWERSHELL_BODY = r"""# Records each command to the pretty-please history log
$Global:__PlsHistoryFile = __LOG_FILE__
$Global:__PlsLastCmd = ""

function __Pls_RecordCommand {
    $lastCmd = (Get-History -Count 1).CommandLine
    if ($lastCmd -and $lastCmd -ne $Global:__PlsLastCmd) {
        $Global:__PlsLastCmd = $lastCmd
        $exitCode = $LASTEXITCODE
        if ($null -eq $exitCode) { $exitCode = 0 }
        $logDir = Split-Path -Parent $Global:__PlsHistoryFile
        if (-not (Test-Path $logDir)) {
            New-Item -Path $logDir -ItemType Directory -Force | Out-Null
        }
        $timestamp = (Get-Date).ToUniversalTime().ToString("yyyy-MM-ddTHH:mm:ssZ")
        $json = [ordered]@{ cmd = $lastCmd; exit = $exitCode; time = $timestamp } | ConvertTo-Json -Compress
        Add-Content -Path $Global:__PlsHistoryFile -Value $json
        $content = Get-Content $Global:__PlsHistoryFile -Tail __LIMIT__ -ErrorAction SilentlyContinue
        if ($content) {
            $content | Set-Content $Global:__PlsHistoryFile
        }
    }
}

if (-not (Get-Variable -Name __PlsPromptBackup -Scope Global -ErrorAction SilentlyContinue)) {
    $Global:__PlsPromptBackup = $function:prompt
    function Global:prompt {
        __Pls_RecordCommand
        & $Global:__PlsPromptBackup
    }
}"""


def posix_double_quote(value: str, expand: bool = False) -> str:
    """Double-quote a value for sh/bash/zsh.

    Args:
        value: Text to quote
        expand: Leave ``$`` unescaped so ``$HOME`` expands
    """
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("`", "\\`")
    if not expand:
        escaped = escaped.replace("$", "\\$")
    return f'"{escaped}"'


def powershell_single_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _wrap(body: str) -> str:
    return f"{BEGIN_MARKER}\n{body}\n{END_MARKER}"


def _posix_script(body: str, log_file: str, log_dir: str, limit: int) -> str:
    record = (
        _POSIX_RECORD.rstrip("\n")
        .replace("__LOG_FILE__", log_file)
        .replace("__LOG_DIR__", log_dir)
        .replace("__LIMIT__", str(limit))
    )
    return _wrap(body.replace("__RECORD__", record))


def zsh_script(log_file: str, log_dir: str, limit: int) -> str:
    return _posix_script(_ZSH_BODY, log_file, log_dir, limit)


def bash_script(log_file: str, log_dir: str, limit: int) -> str:
    return _posix_script(_BASH_BODY, log_file, log_dir, limit)


def powershell_script(log_file: str, log_dir: str, limit: int) -> str:
    # The PowerShell snippet derives its directory from the log path
    return _wrap(
        _POWERSHELL_BODY.replace("__LOG_FILE__", log_file).replace(
            "__LIMIT__", str(limit)
        )
    )


ScriptGenerator = Callable[[str, str, int], str]

GENERATORS: dict[ShellKind, ScriptGenerator] = {
    ShellKind.ZSH: zsh_script,
    ShellKind.BASH: bash_script,
    ShellKind.POWERSHELL: powershell_script,
}


def generate_script(
    kind: ShellKind, log_file: str, log_dir: str, limit: int
) -> str | None:
    """Build the hook snippet for a shell kind.

    Args:
        kind: Target shell
        log_file: Log path as a quoted shell expression
        log_dir: Log directory as a quoted shell expression
        limit: Number of log lines to keep

    Returns:
        The snippet, delimited by the begin/end markers, or None when the
        shell cannot host a startup hook
    """
    generator = GENERATORS.get(kind)
    if generator is None:
        return None
    return generator(log_file, log_dir, max(limit, 1))
