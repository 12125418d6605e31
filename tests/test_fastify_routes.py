import textwrap

from apidraft.extractors.fastify.routes import extract_path_params, extract_routes


def src(s: str) -> str:
    return textwrap.dedent(s)


def test_inline_handler_with_nested_braces_and_strings():
    code = src(
        """
        export default async function (fastify) {
          fastify.get('/user', async (request, reply) => {
            const label = "}{"
            const user = { id: request.query.id, name: `x${"}"}` }
            if (user) { return { user } }
            return { user }
          })

          fastify.post('/user', async (request) => ({ ok: request.body.name }))
        }
        """
    )
    routes = extract_routes(code)
    assert [(r.method, r.route) for r in routes] == [("get", "/user"), ("post", "/user")]

    get = routes[0]
    assert get.handler_name is None
    assert get.handler_source.startswith("async (request, reply) =>")
    assert get.handler_source.endswith("return { user }\n  }")
    assert "request.query.id" in get.handler_source
    assert routes[1].handler_source == "async (request) => ({ ok: request.body.name })"


def test_symbolic_handlers_property_and_bare():
    code = src(
        """
        fastify.get('/:id', fastify.cartsGet);
        fastify.get('/', cartsGetAll);
        """
    )
    routes = extract_routes(code)
    assert [(r.route, r.handler_name) for r in routes] == [
        ("/:id", "fastify.cartsGet"),
        ("/", "cartsGetAll"),
    ]
    assert all(r.handler_source is None for r in routes)
    assert routes[0].path_params == ["id"]


def test_commented_out_registrations_are_skipped():
    code = src(
        """
        fastify.get('/:id', fastify.cartsGet);
        // fastify.post('/:id', fastify.cartsUpdate);
        /*
        fastify.delete('/:id', fastify.cartsDelete);
        */
        """
    )
    routes = extract_routes(code)
    assert [(r.method, r.route) for r in routes] == [("get", "/:id")]


def test_generic_call_and_route_options_object():
    code = src(
        """
        fastify.get<{ Querystring: { id: string } }>('/user', async (req, reply) => {
          return { user: req.query.id }
        })
        app.post('/carts', { schema: { body: { type: 'object' } } }, fastify.cartsCreate)
        router.delete(`/items/:id`, removeItem)
        """
    )
    routes = extract_routes(code)
    assert [(r.method, r.route) for r in routes] == [
        ("get", "/user"),
        ("post", "/carts"),
        ("delete", "/items/:id"),
    ]
    assert routes[1].handler_name == "fastify.cartsCreate"
    assert routes[2].handler_name == "removeItem"


def test_non_literal_paths_and_map_lookups_are_ignored():
    code = src(
        """
        const prefix = '/v1'
        fastify.get(prefix + '/users', listUsers)
        const v = cache.get('key', fallback)
        const h = request.headers.get('x-id')
        """
    )
    assert extract_routes(code) == []


def test_duplicate_registration_last_wins():
    code = src(
        """
        fastify.get('/a', first)
        fastify.post('/b', other)
        fastify.get('/a', second)
        """
    )
    routes = extract_routes(code)
    assert [(r.method, r.route, r.handler_name) for r in routes] == [
        ("get", "/a", "second"),
        ("post", "/b", "other"),
    ]


def test_path_params_order_and_dedup():
    assert extract_path_params("/users/:id/posts/{postId}/:id") == ["id", "postId"]
    assert extract_path_params("/health") == []


def test_declared_schema_annotation_line_and_block_comments():
    code = src(
        """
        // @schema({"responses": {"204": {"description": "No content"}}})
        fastify.delete('/:id', fastify.cartsDelete)

        /**
         * @fastify.schema({
         *   "parameters": [],
         *   "responses": {"200": {"description": "ok"}}
         * })
         */
        fastify.get('/', cartsGetAll)

        fastify.put('/:id', fastify.cartsUpdate)
        """
    )
    routes = extract_routes(code)
    by_method = {r.method: r for r in routes}

    assert by_method["delete"].declared_schema == {"responses": {"204": {"description": "No content"}}}
    assert by_method["get"].declared_schema == {"parameters": [], "responses": {"200": {"description": "ok"}}}
    # the annotation above the GET must not leak onto the next registration
    assert by_method["put"].declared_schema is None


def test_malformed_declared_schema_is_ignored():
    code = src(
        """
        // @schema({"summary": oops})
        fastify.get('/a', handler)
        """
    )
    routes = extract_routes(code)
    assert len(routes) == 1
    assert routes[0].declared_schema is None
