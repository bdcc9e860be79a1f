"""
Remote shell command building

Every value interpolated into a remote command goes through ``quote``.
Remote paths may start with ``~`` and keep home expansion; arbitrary text
travels base64-encoded so it never needs shell escaping at all.
"""
import base64
import shlex
import string
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class RemotePath:
    """A remote path whose leading ``~`` is expanded by the remote shell"""
    path: str

    def quoted(self) -> str:
        if self.path == "~":
            return '"$HOME"'
        if self.path.startswith("~/"):
            rest = self.path[2:]
            return '"$HOME"/' + shlex.quote(rest) if rest else '"$HOME"/'
        return shlex.quote(self.path)

    def join(self, *parts: str) -> "RemotePath":
        base = self.path.rstrip("/") or "/"
        tail = "/".join(p.strip("/") for p in parts if p and p.strip("/"))
        if not tail:
            return RemotePath(base)
        if base == "/":
            return RemotePath("/" + tail)
        return RemotePath(f"{base}/{tail}")

    def parent(self) -> "RemotePath":
        head, _, _ = self.path.rstrip("/").rpartition("/")
        return RemotePath(head or "/")

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class Raw:
    """Trusted shell fragment, inserted verbatim"""
    text: str


Arg = Union[str, int, float, RemotePath, Raw]


def quote(value: Any) -> str:
    """Quote one value for a POSIX shell"""
    if isinstance(value, RemotePath):
        return value.quoted()
    if isinstance(value, Raw):
        return value.text
    if isinstance(value, bool):
        raise TypeError("booleans are not shell arguments")
    if isinstance(value, (int, float)):
        return str(value)
    return shlex.quote(str(value))


def render(template: str, **values: Any) -> str:
    """
    Fill ``{name}`` fields in a command template with quoted values.

    Literal braces in the template must be doubled, as with ``str.format``.

    Example:
        render("mkdir -p {dir}", dir=RemotePath("~/a b"))
        -> 'mkdir -p "$HOME"/\\'a b\\''
    """
    names = {field for _, field, _, _ in string.Formatter().parse(template) if field}
    missing = names - values.keys()
    if missing:
        raise KeyError(f"missing command parameters: {', '.join(sorted(missing))}")
    return template.format(**{k: quote(v) for k, v in values.items()})


def b64encode_text(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("ascii")


def write_file_command(path: RemotePath, content: Union[str, bytes], mode: str = "") -> str:
    """
    Command that atomically writes ``content`` to ``path`` on the remote host.

    The payload is base64 so no shell metacharacter in it can ever be live.
    """
    tmp = RemotePath(f"{path.path}.tmp")
    cmd = render(
        "mkdir -p {parent} && printf %s {payload} | base64 -d > {tmp}",
        parent=path.parent(),
        payload=b64encode_text(content),
        tmp=tmp,
    )
    if mode:
        cmd += render(" && chmod {mode} {tmp}", mode=mode, tmp=tmp)
    return cmd + render(" && mv -f {tmp} {path}", tmp=tmp, path=path)


def background_command(command: str, log_path: Union[RemotePath, str], append: bool = False) -> str:
    """Run ``command`` detached from the session, output to ``log_path``"""
    redirect = ">>" if append else ">"
    return render(
        "nohup sh -c {inner} >/dev/null 2>&1 < /dev/null & echo started",
        inner=f"{command} {redirect} {quote(log_path)} 2>&1",
    )
