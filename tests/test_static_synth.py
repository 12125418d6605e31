from apidraft.domain.models import RouteInfo
from apidraft.synth.heuristics import analyze_handler, check_auth, extract_body_params, extract_query_params
from apidraft.synth.static import merge_enhancement, synthesize


def route(path="/items/:id", method="get", code="", **kw) -> RouteInfo:
    from apidraft.extractors.fastify.routes import extract_path_params

    info = RouteInfo(method=method, route=path, handler_source=code, path_params=extract_path_params(path), **kw)
    return analyze_handler(info)


def test_query_params_deduplicated_in_order():
    code = "const a = request.query.b; const c = req.query.a; if (request.query.b) {}"
    assert extract_query_params(code) == ["b", "a"]


def test_destructured_query_and_body():
    code = "const { page, size: limit = 10 } = request.query\nconst { name, ...rest } = request.body"
    assert extract_query_params(code) == ["page", "size"]
    assert extract_body_params(code) == ["name"]


def test_query_access_does_not_count_body():
    assert extract_query_params("request.body.x") == []
    assert extract_body_params("request.body.x + request.body.y") == ["x", "y"]


def test_auth_detection():
    assert check_auth("if (!request.headers.authorization) return")
    assert check_auth("const t = verifyJwt(x)")
    assert check_auth("Bearer abc")
    assert not check_auth("return { ok: true }")


def test_path_params_become_required_parameters_in_order():
    op = synthesize(route(path="/users/:userId/posts/{postId}"))
    params = [(p["name"], p["in"], p["required"]) for p in op["parameters"]]
    assert params == [("userId", "path", True), ("postId", "path", True)]
    assert op["parameters"][0]["description"] == "userId identifier"
    assert op["parameters"][0]["schema"] == {"type": "string"}


def test_query_and_body_params():
    op = synthesize(route(path="/search", method="post", code="request.query.q; request.body.title; request.body.tags"))

    query = [p for p in op["parameters"] if p["in"] == "query"]
    assert query == [
        {
            "name": "q",
            "in": "query",
            "required": False,
            "description": "q query parameter",
            "schema": {"type": "string"},
        }
    ]

    schema = op["requestBody"]["content"]["application/json"]["schema"]
    assert schema["type"] == "object"
    assert list(schema["properties"]) == ["title", "tags"]
    assert schema["required"] == ["title", "tags"]


def test_always_200_and_summary():
    op = synthesize(route(path="/health", code="return { ok: true }"))
    assert op["summary"] == "Auto-generated from /health"
    assert set(op["responses"]) == {"200"}
    assert op["responses"]["200"]["content"]["application/json"]["schema"]["properties"] == {
        "status": {"type": "boolean"},
        "result": {"type": "object"},
    }
    assert "security" not in op
    assert "requestBody" not in op


def test_auth_adds_401_and_security():
    op = synthesize(route(code="if (!request.headers.authorization) { return 401 }"))
    assert "401" in op["responses"]
    assert op["security"] == [{"bearerAuth": []}]


def test_declared_schema_replaces_everything_but_summary():
    declared = {"summary": "mine", "responses": {"204": {"description": "gone"}}}
    op = synthesize(route(code="request.query.q; request.headers.authorization", declared_schema=declared))
    assert op == {"summary": "Auto-generated from /items/:id", "responses": {"204": {"description": "gone"}}}
    # the caller's dict is left alone
    assert declared["summary"] == "mine"


def test_merge_enhancement_keeps_static_summary():
    static = synthesize(route(path="/a"))
    merged = merge_enhancement(static, {"responses": {"201": {"description": "created"}}, "summary": "llm"})
    assert merged["responses"] == {"201": {"description": "created"}}
    assert merged["parameters"] == static["parameters"]
    assert merged["summary"] == "Auto-generated from /a"
