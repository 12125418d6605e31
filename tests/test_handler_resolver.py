from pathlib import Path
import textwrap

from apidraft.extractors.fastify import handlers
from apidraft.extractors.fastify.handlers import LexicalHandlerResolver, resolve_handler, strip_namespace

SAMPLE = Path(__file__).resolve().parent / "fixtures" / "sample_app"


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def test_strip_namespace():
    assert strip_namespace("fastify.cartsGet") == "cartsGet"
    assert strip_namespace("cartsGet") == "cartsGet"


def test_resolves_decorated_function_body():
    body = resolve_handler("fastify.cartsGet", SAMPLE / "routes", SAMPLE / "plugins")

    assert body is not None
    assert body.startswith("async function cartsGetFunction(request: any, reply: any) {")
    assert body.rstrip().endswith("}")
    assert "request.headers.authorization" in body
    assert "request.query.user" in body
    # stops at the end of this function, not the next one
    assert "cartsGetAll" not in body


def test_resolves_inline_decoration():
    body = resolve_handler("warehousesCreate", SAMPLE / "routes", SAMPLE / "plugins")
    assert body is not None
    assert body.startswith("async function (request: any, reply: any)")
    assert "request.body" in body


def test_decorated_name_is_not_confused_with_prefix_sibling():
    body = resolve_handler("fastify.warehousesGet", SAMPLE / "routes", SAMPLE / "plugins")
    assert body is not None
    assert "'Warehouse get successfully'" in body
    assert "get all" not in body


def test_missing_handler_returns_none():
    assert resolve_handler("fastify.cartsRemove", SAMPLE / "routes", SAMPLE / "plugins") is None


def test_falls_back_to_routes_dir_when_not_decorated(tmp_path: Path):
    write(
        tmp_path / "routes" / "orders.ts",
        """
        export default async function (fastify) {
          fastify.get('/orders', listOrders)
        }

        async function listOrders(request, reply) {
          if (request.query.page) { return { page: request.query.page } }
          return { items: [] }
        }
        """,
    )
    body = resolve_handler("listOrders", tmp_path / "routes", tmp_path / "plugins")
    assert body is not None
    assert body.startswith("async function listOrders(request, reply) {")
    assert body.endswith("return { items: [] }\n}")


def test_definition_in_another_plugin_file(tmp_path: Path):
    write(
        tmp_path / "plugins" / "register.ts",
        """
        import { ordersGet } from './impl'
        export default fp(async (fastify) => {
          fastify.decorate("ordersGet", ordersGet)
        })
        """,
    )
    write(
        tmp_path / "plugins" / "impl.ts",
        """
        export async function ordersGet({ params }, reply) {
          return { id: params.id }
        }
        """,
    )
    body = resolve_handler("ordersGet", tmp_path / "routes", tmp_path / "plugins")
    assert body == "async function ordersGet({ params }, reply) {\n  return { id: params.id }\n}"


def test_commented_out_decoration_is_ignored(tmp_path: Path):
    write(
        tmp_path / "plugins" / "p.ts",
        """
        // fastify.decorate('ghost', ghostFn)
        async function ghostFn(request) { return {} }
        """,
    )
    assert resolve_handler("ghost", tmp_path / "routes", tmp_path / "plugins") is None


def test_repeated_lookups_read_each_file_once(monkeypatch):
    reads: list[str] = []
    real_read = handlers.read_text

    def counting_read(path, *args, **kwargs):
        reads.append(str(path))
        return real_read(path, *args, **kwargs)

    monkeypatch.setattr(handlers, "read_text", counting_read)

    resolver = LexicalHandlerResolver(SAMPLE / "routes", SAMPLE / "plugins")
    assert resolver.resolve("fastify.cartsGet") is not None
    assert resolver.resolve("fastify.cartsGetAll") is not None
    assert resolver.resolve("fastify.warehousesGet") is not None
    assert resolver.resolve("fastify.cartsGet") is not None

    assert len(reads) == len(set(reads))
