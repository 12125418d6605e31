from __future__ import annotations

import re

from apidraft.domain.models import RouteInfo

_AUTH_RE = re.compile(r"request\.headers\.authorization|authorization|bearer|jwt|token", re.IGNORECASE)


def _access_re(container: str) -> re.Pattern[str]:
    # request.query.id, req.query.id, query.id
    return re.compile(r"(?<![\w$])(?:[A-Za-z_$][\w$]*\s*\.\s*)?" + container + r"\s*\.\s*([A-Za-z_$][\w$]*)")


def _destructure_re(container: str) -> re.Pattern[str]:
    # const { id, name: alias = 'x' } = request.query
    return re.compile(r"\{([^{}]*)\}\s*=\s*(?:[A-Za-z_$][\w$]*\s*\.\s*)?" + container + r"\b(?!\s*\.)")


_QUERY_ACCESS = _access_re("query")
_BODY_ACCESS = _access_re("body")
_QUERY_DESTRUCTURE = _destructure_re("query")
_BODY_DESTRUCTURE = _destructure_re("body")


def _collect(code: str, access: re.Pattern[str], destructure: re.Pattern[str]) -> list[str]:
    hits: list[tuple[int, str]] = [(m.start(), m.group(1)) for m in access.finditer(code)]
    for m in destructure.finditer(code):
        for part in m.group(1).split(","):
            name = part.split(":", 1)[0].split("=", 1)[0].strip()
            if name and not name.startswith("..."):
                hits.append((m.start(), name))

    out: list[str] = []
    for _, name in sorted(hits, key=lambda h: h[0]):
        if name not in out:
            out.append(name)
    return out


def extract_query_params(code: str) -> list[str]:
    return _collect(code, _QUERY_ACCESS, _QUERY_DESTRUCTURE)


def extract_body_params(code: str) -> list[str]:
    return _collect(code, _BODY_ACCESS, _BODY_DESTRUCTURE)


def check_auth(code: str) -> bool:
    return bool(_AUTH_RE.search(code))


def analyze_handler(info: RouteInfo, code: str | None = None) -> RouteInfo:
    """Fill query/body params and the auth flag from the handler's text."""
    code = info.handler_source if code is None else code
    code = code or ""
    info.query_params = extract_query_params(code)
    info.body_params = extract_body_params(code)
    info.requires_auth = check_auth(code)
    return info
