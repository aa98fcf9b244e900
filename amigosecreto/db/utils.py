from pathlib import Path
from typing import Optional

from sqlalchemy.engine import make_url


def resolve_sqlite_url(url: str, project_root: Path) -> str:
    """Resolve 'sqlite:///./relative/path' to an absolute sqlite:/// URL.

    Keeps other URL forms unchanged.
    """
    prefix = "sqlite:///./"
    if not url.startswith(prefix):
        return url
    rel = url[len(prefix) :]
    return f"sqlite:///{(project_root / rel).resolve()}"


def apply_password(url: str, password: Optional[str]) -> str:
    """Return ``url`` with ``password`` injected, or unchanged when empty.

    Lets the connection string and the secret live in separate variables.
    """
    if not password:
        return url
    return make_url(url).set(password=password).render_as_string(hide_password=False)
