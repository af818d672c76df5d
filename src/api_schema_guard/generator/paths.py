"""Route path inference from module file names."""

import re

from api_schema_guard.diagnostics import Diagnostics, shorten_file_path

SERVER_FILE_RE = re.compile(r"/\+server\.py$")
SEGMENT_PARAM_RE = re.compile(r"\[([^\]]+)\]")
PATH_PARAM_RE = re.compile(r"{([^}]+)}")


def infer_path_from_file(
    file: str, base_dir: str = "/src/routes", diagnostics: Diagnostics | None = None
) -> str:
    """Convert a route file path into an OpenAPI path.

    "/src/routes/api/users/[id]/+server.py" -> "/api/users/{id}"

    A file outside ``base_dir`` is still converted, with a warning: it usually
    means the discovery root and ``base_dir`` disagree.
    """
    path = file.replace("\\", "/")

    if path.startswith(base_dir):
        path = path[len(base_dir):]
    else:
        (diagnostics or Diagnostics()).warn(
            "[openapi] infer_path_from_file: file path does not start with configured base_dir.",
            {"base_dir": base_dir, "file": shorten_file_path(file)},
        )

    path = SERVER_FILE_RE.sub("", path)
    path = SEGMENT_PARAM_RE.sub(r"{\1}", path)

    if not path.startswith("/"):
        path = "/" + path
    return path


def infer_path_params(path: str) -> list[dict]:
    """Required string path parameters for every distinct ``{name}`` segment."""
    params = []
    seen = set()
    for match in PATH_PARAM_RE.finditer(path):
        name = match.group(1).strip()
        if not name or name in seen:
            continue
        seen.add(name)
        params.append({"in": "path", "name": name, "required": True, "schema": {"type": "string"}})
    return params
